"""Slash commands and screens for solo dungeon adventures."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import discord
from discord import app_commands
from discord.ext import commands, tasks

from crawler import (
    AuditLog,
    ConflictChoice,
    ContextBindingStore,
    GameState,
    GameStateRepository,
    HeroCatalog,
    HeroInstance,
    HeroSelectionFlow,
    HeroTemplate,
    PlayerContext,
    ResumeOutcome,
    SaveOutcome,
    Screen,
    ScreenRouter,
    SessionLifecycle,
    SessionRegistry,
    Settings,
)
from crawler.hero_selection import CONFIRM, GO_BACK

log = logging.getLogger(__name__)

DIVISION_LABELS: Dict[str, str] = {
    "gold": "Gold Division",
    "tokens": "Token Division",
    "dng": "$DNG Division",
    "hero": "$HERO Division",
    "eth": "$ETH Division",
}

SCREEN_LABELS: Dict[str, str] = {
    Screen.START_MENU.value: "Start Menu",
    Screen.HERO_SELECTION.value: "Hero Selection",
    Screen.HERO_CONFIRMATION.value: "Hero Confirmation",
    Screen.EXPLORATION.value: "Exploration",
    Screen.BATTLE.value: "Battle",
    Screen.INVENTORY.value: "Inventory",
}


def context_from_interaction(interaction: discord.Interaction) -> PlayerContext:
    user = interaction.user
    return PlayerContext(
        player_id=user.id,
        channel_id=interaction.channel_id,
        player_name=getattr(user, "display_name", None) or user.name,
        interaction=interaction,
    )


def describe_state(state: GameState) -> str:
    current_hp, max_hp = state.hero_health()
    location = SCREEN_LABELS.get(state.current_screen, state.current_screen)
    return (
        f"**Floor**: {state.current_floor}\n"
        f"**Hero**: {state.hero_name or 'None'}\n"
        f"**HP**: {current_hp}/{max_hp}\n"
        f"**Location**: {location}"
    )


def build_resume_embed(outcome: ResumeOutcome) -> discord.Embed:
    """Return the single reply shown for a load attempt."""

    status = outcome.status
    if status == "conflict":
        embed = discord.Embed(
            title="Active Game Found",
            description=(
                "You already have an active game session.\n\n"
                f"{describe_state(outcome.state) if outcome.state else ''}\n\n"
                "Continue your current game, replace it with your saved game, or cancel."
            ),
            color=discord.Color.orange(),
        )
    elif status == "wrong_context":
        embed = discord.Embed(
            title="Wrong Channel",
            description=(
                "You can only load your game in your own adventure channel.\n"
                "Please use this command where you started your adventure."
            ),
            color=discord.Color.orange(),
        )
    elif status == "no_saved_game":
        embed = discord.Embed(
            title="No Saved Game",
            description=(
                "You don't have any saved progress yet.\n"
                "Start a new adventure with `/start`."
            ),
            color=discord.Color.red(),
        )
    elif status == "load_failed":
        embed = discord.Embed(
            title="Load Failed",
            description=(
                "Something went wrong while loading your progress.\n"
                "Please try again in a moment."
            ),
            color=discord.Color.red(),
        )
    elif status == "cancelled":
        embed = discord.Embed(
            title="Load Cancelled",
            description="Nothing was changed.",
            color=discord.Color.light_grey(),
        )
    elif status == "continued":
        embed = discord.Embed(
            title="Continuing Your Game",
            description=f"{describe_state(outcome.state) if outcome.state else ''}",
            color=discord.Color.green(),
        )
    else:
        embed = discord.Embed(
            title="Game Loaded",
            description=(
                "Your saved game has been loaded.\n\n"
                f"{describe_state(outcome.state) if outcome.state else ''}\n\n"
                "Your adventure will resume shortly..."
            ),
            color=discord.Color.green(),
        )
    return embed


def build_save_embed(outcome: SaveOutcome) -> discord.Embed:
    if outcome.status == "saved" and outcome.state is not None:
        return discord.Embed(
            title="Game Saved",
            description=f"{describe_state(outcome.state)}\n\nYour adventure can be continued anytime.",
            color=discord.Color.green(),
        )
    if outcome.status == "no_active_game":
        return discord.Embed(
            title="No Active Game",
            description="Start an adventure with `/start` before saving.",
            color=discord.Color.red(),
        )
    if outcome.status == "wrong_context":
        return discord.Embed(
            title="Wrong Channel",
            description="You can only save in your own adventure channel.",
            color=discord.Color.orange(),
        )
    return discord.Embed(
        title="Save Failed",
        description="Something went wrong while saving. Your game is still active, please try again.",
        color=discord.Color.red(),
    )


async def deliver(
    context: PlayerContext,
    *,
    embed: discord.Embed,
    view: Optional[discord.ui.View] = None,
) -> None:
    """Send ``embed`` through whichever response channel is still open."""

    interaction = context.interaction
    if interaction is None:
        log.debug("No interaction to render for player %s", context.player_id)
        return
    kwargs: Dict[str, Any] = {"embed": embed, "ephemeral": True}
    if view is not None:
        kwargs["view"] = view
    if interaction.response.is_done():
        await interaction.followup.send(**kwargs)
    else:
        await interaction.response.send_message(**kwargs)


class AdventureView(discord.ui.View):
    """Base view bound to one player and one live game state."""

    def __init__(self, cog: "AdventureCog", context: PlayerContext, state: GameState) -> None:
        super().__init__(timeout=600)
        self.cog = cog
        self.context = context
        self.state = state

    async def interaction_check(self, interaction: discord.Interaction) -> bool:  # noqa: D401
        if interaction.user.id != self.context.player_id:
            await interaction.response.send_message(
                "Only the adventurer who opened this menu can use it.",
                ephemeral=True,
            )
            return False
        live = await self.cog.lifecycle.active_session(self.context.player_id)
        if live is not self.state:
            await interaction.response.send_message(
                "This adventure is no longer active. Use `/chload` or `/start`.",
                ephemeral=True,
            )
            return False
        return True

    def follow_up(self, interaction: discord.Interaction) -> PlayerContext:
        return self.context.with_interaction(interaction)


class StartMenuView(AdventureView):
    def __init__(self, cog: "AdventureCog", context: PlayerContext, state: GameState) -> None:
        super().__init__(cog, context, state)
        if isinstance(state.selected_hero, HeroInstance):
            self.choose_hero.label = "Enter Dungeon"

    @discord.ui.button(label="Choose Hero", style=discord.ButtonStyle.primary)
    async def choose_hero(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        context = self.follow_up(interaction)
        if isinstance(self.state.selected_hero, HeroInstance):
            await self.cog.screens.exploration.show(context, self.state)
        else:
            await self.cog.screens.hero_selection.show(context, self.state)
        self.stop()

    @discord.ui.button(label="Inventory", style=discord.ButtonStyle.secondary)
    async def open_inventory(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        await self.cog.screens.inventory.show(self.follow_up(interaction), self.state)
        self.stop()


class HeroSelect(discord.ui.Select):
    def __init__(self, heroes: tuple[HeroTemplate, ...]) -> None:
        options = [
            discord.SelectOption(
                label=hero.name[:100],
                value=hero.key,
                description=hero.description[:100] or None,
                emoji=hero.emoji or None,
            )
            for hero in heroes[:25]
        ]
        super().__init__(placeholder="Choose your hero...", options=options)

    async def callback(self, interaction: discord.Interaction) -> None:  # noqa: D401
        view = self.view
        if not isinstance(view, HeroSelectionView):
            await interaction.response.send_message(
                "This menu has expired. Open hero selection again.", ephemeral=True
            )
            return
        await view.handle_choice(interaction, self.values[0])


class HeroSelectionView(AdventureView):
    def __init__(
        self,
        cog: "AdventureCog",
        context: PlayerContext,
        state: GameState,
        heroes: tuple[HeroTemplate, ...],
    ) -> None:
        super().__init__(cog, context, state)
        self.add_item(HeroSelect(heroes))

    async def handle_choice(self, interaction: discord.Interaction, hero_id: str) -> None:
        result = self.cog.hero_flow.choose(self.state, hero_id)
        if result.status == "locked" and result.hero is not None:
            await interaction.response.send_message(
                f"{result.hero.name} is not yet unlocked. "
                f"Reach floor {result.required_floor} to unlock this hero.",
                ephemeral=True,
            )
            return
        if result.status != "selected" or not isinstance(result.hero, HeroTemplate):
            await interaction.response.send_message(
                "Selected hero not found. Please try again.", ephemeral=True
            )
            return
        self.stop()
        await deliver(
            self.follow_up(interaction),
            embed=build_hero_embed(result.hero, confirming=True),
            view=HeroConfirmationView(self.cog, self.context, self.state),
        )


class HeroConfirmationView(AdventureView):
    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.success)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        context = self.follow_up(interaction)
        result = self.cog.hero_flow.confirm(self.state, CONFIRM)
        self.stop()
        if result.status != "confirmed":
            await self.cog.screens.hero_selection.show(context, self.state)
            return
        await self.cog.screens.exploration.show(context, self.state)

    @discord.ui.button(label="Choose Another", style=discord.ButtonStyle.secondary)
    async def back(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        self.cog.hero_flow.confirm(self.state, GO_BACK)
        self.stop()
        await self.cog.screens.hero_selection.show(self.follow_up(interaction), self.state)


class ExplorationView(AdventureView):
    def __init__(self, cog: "AdventureCog", context: PlayerContext, state: GameState) -> None:
        super().__init__(cog, context, state)
        self.explore.disabled = not state.can_explore()

    @discord.ui.button(label="Explore", style=discord.ButtonStyle.primary)
    async def explore(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        self.state.record_exploration()
        self.stop()
        await self.cog.screens.exploration.show(self.follow_up(interaction), self.state)

    @discord.ui.button(label="Descend", style=discord.ButtonStyle.success)
    async def descend(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        self.state.advance_floor()
        self.stop()
        await self.cog.screens.exploration.show(self.follow_up(interaction), self.state)

    @discord.ui.button(label="Inventory", style=discord.ButtonStyle.secondary)
    async def open_inventory(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        self.stop()
        await self.cog.screens.inventory.show(self.follow_up(interaction), self.state)


class BattleView(AdventureView):
    @discord.ui.button(label="Flee", style=discord.ButtonStyle.danger)
    async def flee(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        self.state.battle.active = False
        self.state.battle.player_last_move = "flee"
        self.stop()
        await self.cog.screens.exploration.show(self.follow_up(interaction), self.state)


class InventoryView(AdventureView):
    @discord.ui.button(label="Back", style=discord.ButtonStyle.secondary)
    async def back(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        self.stop()
        context = self.follow_up(interaction)
        if isinstance(self.state.selected_hero, HeroInstance):
            await self.cog.screens.exploration.show(context, self.state)
        else:
            await self.cog.screens.start_menu.show(context, self.state)


class ConflictPromptView(discord.ui.View):
    """Let a player decide what happens to their live game when loading."""

    def __init__(self, cog: "AdventureCog", context: PlayerContext) -> None:
        super().__init__(timeout=120)
        self.cog = cog
        self.context = context

    async def interaction_check(self, interaction: discord.Interaction) -> bool:  # noqa: D401
        if interaction.user.id != self.context.player_id:
            await interaction.response.send_message(
                "Only the adventurer who asked to load can respond.",
                ephemeral=True,
            )
            return False
        return True

    async def _resolve(self, interaction: discord.Interaction, choice: ConflictChoice) -> None:
        await interaction.response.defer()
        context = self.context.with_interaction(interaction)
        outcome = await self.cog.lifecycle.resolve_conflict(context, choice)
        self.stop()
        await interaction.edit_original_response(embed=build_resume_embed(outcome), view=None)

    @discord.ui.button(label="Continue Current Game", style=discord.ButtonStyle.primary)
    async def continue_current(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        await self._resolve(interaction, "continue")

    @discord.ui.button(label="Load Saved Game", style=discord.ButtonStyle.secondary)
    async def load_saved(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        await self._resolve(interaction, "load_saved")

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.danger)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:  # noqa: D401
        await self._resolve(interaction, "cancel")


def build_hero_embed(hero: HeroTemplate, *, confirming: bool = False) -> discord.Embed:
    title = f"Confirm {hero.name}?" if confirming else hero.name
    embed = discord.Embed(title=title, description=hero.description, color=discord.Color.green())
    embed.add_field(
        name="Stats",
        value=(
            f"Health: {hero.health}\nMana: {hero.mana}\n"
            f"Armor: {hero.armor}\nCrit Chance: {hero.crit_chance}%"
        ),
        inline=True,
    )
    embed.add_field(name="Weapons", value="\n".join(hero.weapons) or "None", inline=True)
    embed.add_field(name="Abilities", value="\n".join(hero.abilities) or "None", inline=True)
    return embed


class StartMenuScreen:
    def __init__(self, cog: "AdventureCog") -> None:
        self.cog = cog

    async def show(self, context: PlayerContext, state: GameState) -> None:
        state.move_to(Screen.START_MENU)
        embed = discord.Embed(
            title="Dungeon Entrance",
            description=describe_state(state),
            color=discord.Color.dark_gold(),
        )
        embed.set_footer(text=DIVISION_LABELS.get(state.economy_type, state.economy_type))
        await deliver(context, embed=embed, view=StartMenuView(self.cog, context, state))


class HeroSelectionScreen:
    def __init__(self, cog: "AdventureCog") -> None:
        self.cog = cog

    async def show(self, context: PlayerContext, state: GameState) -> None:
        result = self.cog.hero_flow.offer(state)
        if result.status != "offered":
            await deliver(
                context,
                embed=discord.Embed(
                    title="No Heroes Available",
                    description="No hero is unlocked for your progress yet.",
                    color=discord.Color.red(),
                ),
            )
            return
        embed = discord.Embed(
            title="Choose Your Hero",
            description="Each hero has unique abilities and starting equipment.",
            color=discord.Color.green(),
        )
        for index, hero in enumerate(result.heroes[:25], start=1):
            embed.add_field(
                name=f"{index}. {hero.name}",
                value=f"Health: {hero.health} | Mana: {hero.mana} | Crit: {hero.crit_chance}%",
                inline=True,
            )
        view = HeroSelectionView(self.cog, context, state, result.heroes)
        await deliver(context, embed=embed, view=view)


class ExplorationScreen:
    def __init__(self, cog: "AdventureCog") -> None:
        self.cog = cog

    async def show(self, context: PlayerContext, state: GameState) -> None:
        if not isinstance(state.selected_hero, HeroInstance):
            await self.cog.screens.hero_selection.show(context, state)
            return
        state.move_to(Screen.EXPLORATION)
        embed = discord.Embed(
            title=f"Floor {state.current_floor}",
            description=describe_state(state),
            color=discord.Color.dark_teal(),
        )
        embed.add_field(
            name="Explorations",
            value=f"{state.current_floor_explorations}/{state.max_explorations()}",
            inline=False,
        )
        await deliver(context, embed=embed, view=ExplorationView(self.cog, context, state))


class BattleScreen:
    def __init__(self, cog: "AdventureCog") -> None:
        self.cog = cog

    async def show(self, context: PlayerContext, state: GameState) -> None:
        state.move_to(Screen.BATTLE)
        battle = state.battle
        embed = discord.Embed(
            title=f"Battle: {battle.monster or 'Unknown foe'}",
            description=describe_state(state),
            color=discord.Color.dark_red(),
        )
        embed.add_field(name="Turn", value=str(battle.turn_count), inline=True)
        if battle.player_last_move:
            embed.add_field(name="Your last move", value=battle.player_last_move, inline=True)
        if battle.monster_last_move:
            embed.add_field(name="Enemy last move", value=battle.monster_last_move, inline=True)
        await deliver(context, embed=embed, view=BattleView(self.cog, context, state))

    async def resume(self, context: PlayerContext, state: GameState) -> None:
        if not state.battle.active:
            log.info("No battle to resume for player %s", state.player_id)
            await self.cog.screens.exploration.show(context, state)
            return
        await self.show(context, state)


class InventoryScreen:
    def __init__(self, cog: "AdventureCog") -> None:
        self.cog = cog

    async def show(self, context: PlayerContext, state: GameState) -> None:
        state.move_to(Screen.INVENTORY)
        inventory = state.inventory
        embed = discord.Embed(title="Inventory", color=discord.Color.blurple())
        embed.add_field(name="Weapons", value="\n".join(inventory.weapons) or "Empty", inline=True)
        embed.add_field(name="Armor", value="\n".join(inventory.armor) or "Empty", inline=True)
        consumables = [f"{name} x{count}" for name, count in inventory.consumables.items()]
        embed.add_field(name="Consumables", value="\n".join(consumables) or "Empty", inline=True)
        embed.add_field(name="Keys", value=str(inventory.keys), inline=True)
        embed.add_field(name="Gold", value=str(inventory.gold), inline=True)
        await deliver(context, embed=embed, view=InventoryView(self.cog, context, state))


class ScreenSet:
    def __init__(self, cog: "AdventureCog") -> None:
        self.start_menu = StartMenuScreen(cog)
        self.hero_selection = HeroSelectionScreen(cog)
        self.exploration = ExplorationScreen(cog)
        self.battle = BattleScreen(cog)
        self.inventory = InventoryScreen(cog)

    def router(self) -> ScreenRouter:
        return ScreenRouter.build(
            start_menu=self.start_menu,
            hero_selection=self.hero_selection,
            exploration=self.exploration,
            battle=self.battle,
            inventory=self.inventory,
        )


class AdventureCog(commands.Cog):
    """Start, save, load and end solo adventures."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.settings: Settings = getattr(bot, "settings", None) or Settings.from_env()
        self.catalog = HeroCatalog.load_default()
        self.hero_flow = HeroSelectionFlow(self.catalog)
        self.screens = ScreenSet(self)
        self.audit = AuditLog(self.settings.audit_log_size)
        self.lifecycle = SessionLifecycle(
            SessionRegistry(),
            GameStateRepository(self.settings.game_state_path),
            self.screens.router(),
            bindings=ContextBindingStore(self.settings.binding_path),
            audit=self.audit,
            resume_delay=self.settings.resume_delay,
            session_timeout=self.settings.session_timeout,
        )

    async def cog_load(self) -> None:
        self.expire_sessions.start()

    def cog_unload(self) -> None:  # noqa: D401 - discord.py hook
        self.expire_sessions.cancel()
        self.lifecycle.cancel_pending()

    @tasks.loop(minutes=5)
    async def expire_sessions(self) -> None:
        await self.lifecycle.expire_idle()

    @expire_sessions.before_loop
    async def before_expire(self) -> None:
        await self.bot.wait_until_ready()

    @app_commands.command(name="start", description="Begin a new dungeon adventure.")
    @app_commands.describe(division="Division to play in. Defaults to the Gold Division.")
    @app_commands.choices(
        division=[
            app_commands.Choice(name=label, value=key) for key, label in DIVISION_LABELS.items()
        ]
    )
    async def start(
        self,
        interaction: discord.Interaction,
        division: Optional[app_commands.Choice[str]] = None,
    ) -> None:
        context = context_from_interaction(interaction)
        economy = division.value if division is not None else self.settings.default_economy
        state, created = await self.lifecycle.start_unless_active(
            context.player_id,
            economy,
            player_name=context.player_name,
            channel_id=context.channel_id,
        )
        if not created:
            await interaction.response.send_message(
                "You already have an active game. Use `/end` to finish it or `/chload` to continue.",
                ephemeral=True,
            )
            return
        await self.screens.start_menu.show(context, state)

    @app_commands.command(name="chload", description="Load your saved game progress.")
    async def chload(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        context = context_from_interaction(interaction)
        outcome = await self.lifecycle.request_resume(context)
        embed = build_resume_embed(outcome)
        if outcome.status == "conflict":
            await interaction.followup.send(
                embed=embed, view=ConflictPromptView(self, context), ephemeral=True
            )
            return
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="chsave", description="Save your current game progress.")
    async def chsave(self, interaction: discord.Interaction) -> None:
        outcome = await self.lifecycle.save_session(context_from_interaction(interaction))
        await interaction.response.send_message(embed=build_save_embed(outcome), ephemeral=True)

    @app_commands.command(name="end", description="End your current adventure.")
    @app_commands.describe(save="Save your progress before ending. Defaults to yes.")
    async def end(self, interaction: discord.Interaction, save: bool = True) -> None:
        context = context_from_interaction(interaction)
        if await self.lifecycle.active_session(context.player_id) is None:
            await interaction.response.send_message("You have no active game.", ephemeral=True)
            return
        if save:
            outcome = await self.lifecycle.save_session(context)
            if outcome.status != "saved":
                await interaction.response.send_message(
                    embed=build_save_embed(outcome), ephemeral=True
                )
                return
        state = await self.lifecycle.end_session(context.player_id)
        floor = state.current_floor if state is not None else 1
        await interaction.response.send_message(
            f"Your adventure ends on floor {floor}." + (" Progress saved." if save else ""),
            ephemeral=True,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(AdventureCog(bot))
