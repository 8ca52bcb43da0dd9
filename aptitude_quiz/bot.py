import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
from typing import Any, Dict, Optional, Set
import os

from .aptitude_service import AptitudeService
from .config_manager import ConfigManager
from .models import Category, Difficulty, QuestionType, QuizMode
from .quiz_controller import QuizController
from .session import (
    EVENT_ABANDONED, EVENT_ANSWERED, EVENT_COMPLETED, EVENT_PRESENTING, EVENT_SAVED, EVENT_TICK,
    QuizSessionMachine, SessionState,
)

logger = logging.getLogger(__name__)

OPTION_LABELS = "ABCDEFGH"

MODE_CHOICES = [app_commands.Choice(name=mode.value.capitalize(), value=mode.value) for mode in QuizMode]
CATEGORY_CHOICES = [
    app_commands.Choice(name=category.value.replace('_', ' ').title(), value=category.value) for category in Category
]
DIFFICULTY_CHOICES = [
    app_commands.Choice(name=difficulty.value.capitalize(), value=difficulty.value) for difficulty in Difficulty
]
TYPE_CHOICES = [
    app_commands.Choice(name=question_type.value.capitalize(), value=question_type.value)
    for question_type in QuestionType
]


def timer_color(remaining_time: int) -> int:
    return 0x00ff00 if remaining_time > 10 else 0xff6600 if remaining_time > 3 else 0xff0000


def build_question_embed(machine: QuizSessionMachine) -> discord.Embed:
    """Embed for the question currently on screen, with its countdown."""
    question = machine.current_question
    remaining_time = machine.time_remaining

    description = question.text
    if question.image_pattern:
        description += f"\n```\n{question.image_pattern}\n```"

    embed = discord.Embed(
        title=f"🎯 Question {machine.current_index + 1}/{len(machine.questions)}",
        description=description,
        color=timer_color(remaining_time)
    )
    embed.add_field(
        name="Options",
        value="\n".join(f"**{OPTION_LABELS[i]}.** {option}" for i, option in enumerate(question.options)),
        inline=False
    )

    timer_emoji = "⏱️" if remaining_time > 10 else "⚠️" if remaining_time > 3 else "🚨"
    embed.add_field(
        name=f"{timer_emoji} Time Remaining",
        value=f"{remaining_time} second{'s' if remaining_time != 1 else ''}",
        inline=True
    )
    embed.add_field(name="🏅 Points", value=str(question.points), inline=True)
    embed.add_field(name="📊 Score", value=str(machine.display_score), inline=True)
    embed.set_footer(
        text=f"{question.category.value.replace('_', ' ').title()} · {question.difficulty.value.capitalize()}"
        + (" · ⚡ Time running out!" if remaining_time <= 3 else "")
    )
    return embed


def build_result_embed(machine: QuizSessionMachine) -> discord.Embed:
    """Embed shown between questions: the outcome and the explanation."""
    question = machine.current_question
    slot = machine.current_answer
    correct_label = f"{OPTION_LABELS[question.correct_answer_index]}. {question.options[question.correct_answer_index]}"

    if slot.is_timed_out:
        title, color = "⏰ Time's Up!", 0xff0000
    elif slot.index == question.correct_answer_index:
        title, color = "✅ Correct!", 0x00ff00
    else:
        title, color = "❌ Incorrect", 0xff6600

    embed = discord.Embed(
        title=f"{title} - Question {machine.current_index + 1}/{len(machine.questions)}",
        description=question.text,
        color=color
    )
    embed.add_field(name="✅ Correct Answer", value=f"**{correct_label}**", inline=False)
    if question.explanation:
        embed.add_field(name="💡 Explanation", value=question.explanation, inline=False)
    embed.add_field(name="Points", value=f"{machine.last_delta:+d}", inline=True)
    embed.add_field(name="📊 Score", value=str(machine.display_score), inline=True)

    if machine.current_index + 1 >= len(machine.questions):
        embed.set_footer(text="That was the final question!")
    else:
        embed.set_footer(text="Next question coming up...")
    return embed


def build_completion_embed(info: Dict[str, Any]) -> discord.Embed:
    """Final results of a completed quiz."""
    embed = discord.Embed(
        title=f"{info['performance_emoji']} Quiz Complete! {info['performance_level']}",
        description=f"<@{info['user_id']}> scored **{info['display_score']}** points",
        color=0x00ff00
    )

    duration = info['duration']
    average = duration['total_seconds'] // info['total_questions'] if info['total_questions'] else 0
    embed.add_field(
        name="📊 Final Statistics",
        value=(
            f"Correct: {info['correct']}/{info['total_questions']} ({info['accuracy_percent']}%)\n"
            f"Total Time: {duration['minutes']}m {duration['seconds']}s\n"
            f"Average per Question: {average}s"
        ),
        inline=False
    )

    if info['topics']:
        embed.add_field(
            name="📚 By Topic",
            value="\n".join(
                f"{topic.replace('_', ' ').title()}: {stats['correct']}/{stats['total']}"
                for topic, stats in sorted(info['topics'].items())
            ),
            inline=False
        )

    if info.get('save_pending'):
        embed.set_footer(text="💾 Saving to your history...")
    elif info['session_id'] is None:
        embed.set_footer(text="⚠️ This run could not be saved to your history")
    else:
        embed.set_footer(text="Use /history to see your past results")
    return embed


class AnswerView(discord.ui.View):
    """Option buttons forwarded to the quiz controller, plus a hint button for hinted questions."""

    def __init__(self, controller: QuizController, channel_id: int, option_count: int, has_hints: bool = False):
        super().__init__(timeout=None)
        self.controller = controller
        self.channel_id = channel_id
        for index in range(option_count):
            button = discord.ui.Button(
                label=OPTION_LABELS[index],
                style=discord.ButtonStyle.primary,
                custom_id=f"aptitude:{channel_id}:{index}"
            )
            button.callback = self._make_callback(index)
            self.add_item(button)

        self.hint_button: Optional[discord.ui.Button] = None
        if has_hints:
            self.hint_button = discord.ui.Button(
                label="Hint",
                emoji="💡",
                style=discord.ButtonStyle.secondary,
                custom_id=f"aptitude:{channel_id}:hint"
            )
            self.hint_button.callback = self.handle_hint
            self.add_item(self.hint_button)

    def _make_callback(self, index: int):
        async def callback(interaction: discord.Interaction):
            await self.handle_answer(interaction, index)
        return callback

    async def handle_answer(self, interaction: discord.Interaction, index: int):
        result = self.controller.submit_answer(self.channel_id, interaction.user.id, index)
        try:
            if result.get('accepted'):
                # The result embed replaces the question through the session listener
                await interaction.response.defer()
            else:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to acknowledge answer in channel {self.channel_id}: {e}")

    async def handle_hint(self, interaction: discord.Interaction):
        result = self.controller.request_hint(self.channel_id, interaction.user.id)
        try:
            if not result['success']:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
                return
            # One hint per question
            self.hint_button.disabled = True
            await interaction.response.edit_message(view=self)
            await interaction.followup.send(result['user_message'], ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to show hint in channel {self.channel_id}: {e}")


class QuizPresenter:
    """
    Renders one channel's quiz.

    Session events arrive synchronously from the clock; each is turned into a
    message update queued behind a lock so edits land in event order.
    """

    # Countdown redraws: every TICK_REDRAW_INTERVAL seconds, then every second near the end
    TICK_REDRAW_INTERVAL = 5
    TICK_REDRAW_FINAL = 3

    def __init__(self, bot: "QuizBot", channel: discord.abc.Messageable, channel_id: int):
        self.bot = bot
        self.channel = channel
        self.channel_id = channel_id
        self.message: Optional[discord.Message] = None
        self._completion_message: Optional[discord.Message] = None
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    def on_event(self, event: str, machine: QuizSessionMachine) -> None:
        if event == EVENT_TICK:
            remaining = machine.time_remaining
            if remaining % self.TICK_REDRAW_INTERVAL and remaining > self.TICK_REDRAW_FINAL:
                return
        handler = {
            EVENT_PRESENTING: self.show_question,
            EVENT_TICK: self.update_timer,
            EVENT_ANSWERED: self.show_result,
            EVENT_COMPLETED: self.show_completion,
            EVENT_SAVED: self.show_saved,
            EVENT_ABANDONED: self.show_abandoned,
        }.get(event)
        if handler is None:
            return

        task = asyncio.get_running_loop().create_task(self._run(event, handler, machine))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, event: str, handler, machine: QuizSessionMachine) -> None:
        async with self._lock:
            try:
                await handler(machine)
            except discord.HTTPException as e:
                await self.bot.handle_discord_api_error(e, f"quiz_{event}")
            except Exception as e:
                logger.error(f"Error rendering '{event}' in channel {self.channel_id}: {e}", exc_info=True)

    async def show_question(self, machine: QuizSessionMachine) -> None:
        if machine.state is not SessionState.PRESENTING:
            return
        question = machine.current_question
        view = AnswerView(self.bot.quiz_controller, self.channel_id, len(question.options), bool(question.hints))
        self.message = await self.channel.send(embed=build_question_embed(machine), view=view)

    async def update_timer(self, machine: QuizSessionMachine) -> None:
        if self.message is None or machine.state is not SessionState.PRESENTING:
            return
        await self.message.edit(embed=build_question_embed(machine))

    async def show_result(self, machine: QuizSessionMachine) -> None:
        if self.message is None:
            return
        await self.message.edit(embed=build_result_embed(machine), view=None)

    async def show_completion(self, machine: QuizSessionMachine) -> None:
        info = QuizController.get_quiz_completion_info(machine)
        if info is not None:
            message = await self.channel.send(embed=build_completion_embed(info))
            if info['save_pending']:
                # The footer is updated once the run has been archived
                self._completion_message = message
                return
        self.bot.release_presenter(self.channel_id, self)

    async def show_saved(self, machine: QuizSessionMachine) -> None:
        try:
            info = QuizController.get_quiz_completion_info(machine)
            if self._completion_message is not None and info is not None:
                await self._completion_message.edit(embed=build_completion_embed(info))
        finally:
            self._completion_message = None
            self.bot.release_presenter(self.channel_id, self)

    async def show_abandoned(self, machine: QuizSessionMachine) -> None:
        if self.message is not None:
            await self.message.edit(view=None)
        self.bot.release_presenter(self.channel_id, self)


class QuizBot(commands.Bot):
    """Discord bot running offline aptitude quizzes"""

    def __init__(self, config=None, service: Optional[AptitudeService] = None):
        # Set up intents - minimal intents for slash commands
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        # Store configuration
        self.app_config = config or {}

        # Initialize core components
        self.config_manager: Optional[ConfigManager] = None
        self.service: Optional[AptitudeService] = service
        self.quiz_controller: Optional[QuizController] = None
        self._presenters: Dict[int, QuizPresenter] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                self.apply_configuration()

            if self.service is None:
                self.service = AptitudeService.from_config(self.config_manager)
            self.quiz_controller = QuizController(self.service, self.config_manager)

            self.check_configuration()
            self.load_question_bank()
            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def apply_configuration(self):
        """Apply settings from configuration file to the config manager."""
        result = self.config_manager.apply_config(self.app_config)
        for error in result['errors']:
            logger.warning(f"Configuration: {error}")
        logger.info(f"Configuration applied ({len(result['applied'])} settings)")

    def check_configuration(self) -> Dict[str, Any]:
        """Log the configuration health check; problems are reported, not fatal."""
        health = self.config_manager.get_configuration_health_check()
        for error in health['errors']:
            logger.error(f"Configuration: {error}")
        for warning in health['warnings']:
            logger.warning(f"Configuration: {warning}")
        for recommendation in health['recommendations']:
            logger.info(f"Configuration recommendation: {recommendation}")
        if health['healthy']:
            logger.info("Configuration health check passed")
        return health

    def load_question_bank(self):
        """Seed the question store on first start."""
        if self.service.seed_if_empty():
            stats = self.service.get_question_stats()
            logger.info(f"Question bank ready with {stats.total} questions")
        else:
            logger.error("Question bank could not be seeded; quizzes will be unavailable until it is")

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="aptitude", description="Start an aptitude quiz")
        @app_commands.describe(
            mode="How questions are chosen",
            count="Number of questions",
            category="Topic (required for category mode)",
            difficulty="Difficulty (required for difficulty mode)",
            question_type="Question type (required for type mode)"
        )
        @app_commands.choices(
            mode=MODE_CHOICES,
            category=CATEGORY_CHOICES,
            difficulty=DIFFICULTY_CHOICES,
            question_type=TYPE_CHOICES
        )
        async def aptitude_command(
            interaction: discord.Interaction,
            mode: str = QuizMode.MIXED.value,
            count: Optional[int] = None,
            category: Optional[str] = None,
            difficulty: Optional[str] = None,
            question_type: Optional[str] = None
        ):
            await self.handle_aptitude(interaction, mode, count, category, difficulty, question_type)

        @self.tree.command(name="quick", description="Start a quick mixed-difficulty quiz")
        async def quick_command(interaction: discord.Interaction):
            await self.handle_quick(interaction)

        @self.tree.command(name="stop", description="Stop your quiz without saving it")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show current quiz status and progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="history", description="Show your recent quiz results")
        async def history_command(interaction: discord.Interaction):
            await self.handle_history(interaction)

        @self.tree.command(name="stats", description="Show the question bank contents")
        async def stats_command(interaction: discord.Interaction):
            await self.handle_stats(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
            print(f"⚡ Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")
            print(f"❌ Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            stopped = self.quiz_controller.stop_all()
            if stopped:
                logger.info(f"Stopped {stopped} running quizzes on shutdown")
        if self.service is not None:
            self.service.close()
        await super().close()

    def release_presenter(self, channel_id: int, presenter: QuizPresenter) -> None:
        if self._presenters.get(channel_id) is presenter:
            del self._presenters[channel_id]

    async def handle_discord_api_error(self, error: Exception, operation: str, interaction: discord.Interaction = None) -> bool:
        """
        Handle Discord API errors with appropriate retry logic and user feedback.

        Args:
            error: The Discord API error
            operation: Description of the operation that failed
            interaction: Discord interaction object (optional)

        Returns:
            True if the operation may be retried, False otherwise
        """
        if isinstance(error, discord.HTTPException):
            if error.status == 429:  # Rate limited
                retry_after = getattr(error, 'retry_after', 5)
                logger.warning(f"Rate limited during {operation}, waiting {retry_after}s")
                await asyncio.sleep(retry_after)
                return True

            elif error.status in [500, 502, 503, 504]:
                logger.warning(f"Discord server error during {operation}: {error.status}")
                await asyncio.sleep(2)
                return True

            elif error.status == 403:
                logger.error(f"Permission denied during {operation}: {error}")
                if interaction:
                    await self.send_error_response(
                        interaction,
                        "Bot doesn't have permission to perform this action. Please check bot permissions.",
                        "❌ Permission Error"
                    )
                return False

            else:
                logger.error(f"Discord API error during {operation}: {error}")
                if interaction:
                    await self.send_error_response(
                        interaction,
                        "Discord API error occurred. Please try again in a moment.",
                        "❌ Discord Error"
                    )
                return False

        logger.error(f"Unexpected error during {operation}: {error}")
        if interaction:
            await self.send_error_response(interaction, "An unexpected error occurred. Please try again.")
        return False

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🧠 Aptitude Quiz Commands",
                description="Timed aptitude practice, right here in the channel",
                color=0x00ff00
            )
            help_embed.add_field(
                name="🎮 Quizzes",
                value=(
                    "`/aptitude [mode] [count] [category] [difficulty] [question_type]` - Start a quiz\n"
                    "`/quick` - Start a quick mixed-difficulty quiz\n"
                    "`/stop` - Stop your quiz (not saved)\n"
                    "`/status` - Show the quiz in this channel"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📊 Results",
                value=(
                    "`/history` - Your recent results and topic breakdown\n"
                    "`/stats` - What the question bank holds"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🏅 Scoring",
                value=(
                    "Correct: full points plus up to 30% time bonus\n"
                    "Incorrect: -25% of the points\n"
                    "Timeout: -20% of the points"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            help_embed.set_footer(text="Use slash commands to interact with the bot")

            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help information", "❌ Help Error")

    async def handle_aptitude(
        self,
        interaction: discord.Interaction,
        mode: str = QuizMode.MIXED.value,
        count: Optional[int] = None,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        question_type: Optional[str] = None
    ):
        """Handle /aptitude command"""
        await self._launch(
            interaction,
            lambda listener: self.quiz_controller.start_quiz(
                interaction.channel_id, interaction.user.id, mode, count, category, difficulty, question_type,
                listener=listener, defer_start=True
            )
        )

    async def handle_quick(self, interaction: discord.Interaction):
        """Handle /quick command"""
        await self._launch(
            interaction,
            lambda listener: self.quiz_controller.start_quick_quiz(
                interaction.channel_id, interaction.user.id, listener=listener, defer_start=True
            )
        )

    async def _launch(self, interaction: discord.Interaction, start):
        """
        Create a quiz through start(listener) and announce it, then present the
        first question so its countdown starts after the announcement is out.
        """
        channel_id = interaction.channel_id
        presenter = QuizPresenter(self, interaction.channel, channel_id)

        result = start(presenter.on_event)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Failed")
            return

        self._presenters[channel_id] = presenter
        session_info = result['session_info']
        embed = discord.Embed(
            title="🎯 Quiz Started!",
            description=result['user_message'],
            color=0x00ff00
        )
        embed.add_field(
            name="📊 Quiz Details",
            value=(
                f"Mode: {session_info['label']}\n"
                f"Questions: {session_info['total_questions']}\n"
                f"Player: <@{session_info['user_id']}>"
            ),
            inline=False
        )
        embed.set_footer(text="Answer with the buttons · /stop to quit")

        try:
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "start_quiz")
        finally:
            self.quiz_controller.begin_quiz(channel_id)

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            result = self.quiz_controller.stop_quiz(interaction.channel_id, interaction.user.id)

            if not result['success']:
                embed = discord.Embed(
                    title="ℹ️ Cannot Stop Quiz",
                    description=result['user_message'],
                    color=0x6699ff
                )
                await interaction.response.send_message(embed=embed, ephemeral=True)
                return

            session_info = result['session_info']
            embed = discord.Embed(
                title="🛑 Quiz Stopped",
                description=result['user_message'],
                color=0xff6600
            )
            embed.add_field(
                name="📊 Progress",
                value=(
                    f"Reached question {session_info['current_question']}/{session_info['total_questions']}\n"
                    f"Score so far: {session_info['score']}"
                ),
                inline=False
            )
            embed.set_footer(text="Use /aptitude or /quick to begin a new quiz")
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in stop command: {e}")
            await self.send_error_response(interaction, "Failed to stop quiz", "❌ Quiz Control Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            channel_id = interaction.channel_id
            if not self.quiz_controller.has_active_session(channel_id):
                await self.send_info_response(
                    interaction,
                    "No quiz is running in this channel. Use `/aptitude` or `/quick` to start one.",
                    "ℹ️ No Active Quiz"
                )
                return

            embed = discord.Embed(
                title="📋 Quiz Status",
                description=self.quiz_controller.get_session_status_summary(channel_id),
                color=0x6699ff
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Error in status command: {e}")
            await self.send_error_response(interaction, "Failed to get quiz status", "❌ Status Error")

    async def handle_history(self, interaction: discord.Interaction):
        """Handle /history command"""
        try:
            user_id = interaction.user.id
            # Storage reads run off the event loop
            history = await asyncio.to_thread(self.quiz_controller.get_user_history, user_id)
            if not history:
                await self.send_info_response(
                    interaction,
                    "You have no completed quizzes yet. Finish one to see it here!",
                    "📜 Quiz History"
                )
                return

            summary = await asyncio.to_thread(self.quiz_controller.get_user_summary, user_id)
            embed = discord.Embed(
                title="📜 Your Recent Quizzes",
                description="\n".join(
                    f"`{entry['start_time']:%Y-%m-%d %H:%M}` · **{entry['score']}** pts · "
                    f"{entry['correct']}/{entry['total_questions']} ({entry['accuracy_percent']}%)"
                    for entry in history
                ),
                color=0x6699ff
            )
            embed.add_field(
                name="📈 Summary",
                value=(
                    f"Quizzes: {summary['sessions']}\n"
                    f"Average score: {summary['average_score']:.0f}\n"
                    f"Best score: {summary['best_score']}\n"
                    f"Average accuracy: {summary['average_accuracy'] * 100:.0f}%"
                ),
                inline=False
            )
            if summary['topics']:
                embed.add_field(
                    name="📚 By Topic",
                    value="\n".join(
                        f"{topic.replace('_', ' ').title()}: {stats['accuracy'] * 100:.0f}% "
                        f"({stats['correct']}/{stats['total']})"
                        for topic, stats in sorted(summary['topics'].items())
                    ),
                    inline=False
                )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Error in history command: {e}")
            await self.send_error_response(interaction, "Failed to load your history", "❌ History Error")

    async def handle_stats(self, interaction: discord.Interaction):
        """Handle /stats command"""
        try:
            stats = await asyncio.to_thread(self.quiz_controller.get_question_stats)
            if not stats['total']:
                await self.send_warning_response(
                    interaction,
                    "The question bank is empty or could not be loaded. Check the logs.",
                    "⚠️ No Questions"
                )
                return

            embed = discord.Embed(
                title="📚 Question Bank",
                description=f"**{stats['total']}** questions available offline",
                color=0x6699ff
            )
            embed.add_field(
                name="By Category",
                value="\n".join(
                    f"{category.replace('_', ' ').title()}: {count}"
                    for category, count in sorted(stats['by_category'].items())
                ),
                inline=True
            )
            embed.add_field(
                name="By Difficulty",
                value="\n".join(
                    f"{difficulty.value.capitalize()}: {stats['by_difficulty'].get(difficulty.value, 0)}"
                    for difficulty in Difficulty
                ),
                inline=True
            )
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in stats command: {e}")
            await self.send_error_response(interaction, "Failed to load question statistics", "❌ Stats Error")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xffaa00
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting aptitude quiz bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
