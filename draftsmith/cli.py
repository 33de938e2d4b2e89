"""CLI and REPL for Draftsmith."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from draftsmith.config import Config
from draftsmith.conversation import ConversationContext
from draftsmith.cost import format_cost
from draftsmith.errors import DraftsmithError
from draftsmith.llm import LLM
from draftsmith.pipeline import BatchTarget, GenerationPipeline, build_batch_target
from draftsmith.skills import list_skills
from draftsmith.tools.overrides import ContextOverrides, InclusionMode
from draftsmith.tools.planner import Plan
from draftsmith.utils.logging import SessionLogger

app = typer.Typer(help="Draftsmith - AI drafting for long-form writing projects")
console = Console()

SCOPE_KEYS = ("book", "chapter", "scene", "character")
KEYWORD_SKILLS = {"CHARACTER": "characters", "CHAPTER": "outline"}


def parse_entities(raw: str) -> list[tuple[int, str]]:
    """Parse ``1:Mara,2:Tobin`` into ``[(1, "Mara"), (2, "Tobin")]``.

    Raises:
        ValueError: If an entry has no number
    """
    entities = []
    for part in raw.split(","):
        if not part.strip():
            continue
        number, _, label = part.partition(":")
        entities.append((int(number.strip()), label.strip()))
    return entities


class REPL:
    """Interactive REPL for Draftsmith."""

    def __init__(self, project_root: Path, config: Config, skill: Optional[str] = None):
        """Initialize REPL.

        Args:
            project_root: Project root directory
            config: Configuration object
            skill: Skill used by /plan (default brainstorm)
        """
        self.project_root = project_root
        self.config = config
        self.logger = SessionLogger(project_root)
        self.pipeline = GenerationPipeline(project_root, config, logger=self.logger)
        self.conversation = ConversationContext()
        self.loop = asyncio.new_event_loop()

        self.skill = skill
        self.scope_ids: dict[str, Optional[str]] = {key: None for key in SCOPE_KEYS}
        self.last_plan: Optional[Plan] = None
        self.last_batch: Optional[BatchTarget] = None
        self.last_message = ""
        self.running = True

    def start(self) -> None:
        """Start the REPL."""
        console.print(Panel.fit(
            "[bold cyan]Draftsmith[/bold cyan] - AI drafting assistant\n"
            f"Project: {self.project_root}\n"
            f"Model: {self.config.default_model}\n"
            "\n"
            "Type /help for commands or /quit to exit",
            border_style="cyan"
        ))

        # Main REPL loop
        while self.running:
            try:
                user_input = console.input("[bold cyan]draftsmith>[/bold cyan] ").strip()

                if not user_input:
                    continue

                self.logger.log_message("user", user_input)
                self.handle_input(user_input)

            except KeyboardInterrupt:
                console.print("\n[dim]Use /quit to exit[/dim]")
                continue
            except EOFError:
                break

        self.loop.close()
        console.print("\n[cyan]Goodbye![/cyan]")

    def handle_input(self, user_input: str) -> None:
        """Handle user input (command or plain request).

        Plain text is shorthand for ``/plan <text>``.
        """
        if user_input.startswith("/"):
            self.handle_command(user_input)
        else:
            self.handle_command(f"/plan {user_input}")

    def handle_command(self, command: str) -> None:
        """Handle slash command.

        Args:
            command: Command string (starting with /)
        """
        parts = command.split(maxsplit=1)
        cmd = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ""

        try:
            if cmd == "/help":
                self.show_help()
            elif cmd == "/quit" or cmd == "/exit":
                self.running = False
            elif cmd == "/plan":
                if not args:
                    console.print("[red]Usage: /plan <message>[/red]")
                    return
                self.plan(args)
            elif cmd == "/confirm":
                self.confirm()
            elif cmd == "/cancel":
                if not self.last_plan:
                    console.print("[dim]No pending plan[/dim]")
                    return
                self.pipeline.cancel(self.last_plan.id)
                console.print(f"[yellow]Cancelled plan {self.last_plan.id}[/yellow]")
                self.last_plan = None
                self.last_batch = None
            elif cmd == "/quick":
                action, _, message = args.partition(" ")
                if not action or not message:
                    console.print("[red]Usage: /quick <action> <message>[/red]")
                    return
                self.quick(action, message)
            elif cmd == "/batch":
                self.batch(args)
            elif cmd == "/skill":
                self.set_skill(args)
            elif cmd == "/scope":
                self.set_scope(args)
            elif cmd == "/override":
                self.set_override(args)
            elif cmd == "/cost":
                self.show_cost(args)
            elif cmd == "/models":
                console.print(f"[dim]Default model: {self.config.default_model}[/dim]")
                console.print("\nAvailable models:")
                for model in LLM.list_models():
                    console.print(f"  - {model}")
            elif cmd == "/config":
                config_dict = self.config.to_dict()
                console.print(Panel(
                    "\n".join(f"{k}: {v}" for k, v in config_dict.items()),
                    title="Configuration",
                    border_style="blue"
                ))
            elif cmd == "/log":
                log_path = self.logger.get_log_path()
                console.print(f"[dim]Session logs: {log_path}[/dim]")
            else:
                console.print(f"[red]Unknown command: {cmd}[/red]")
                console.print("[dim]Type /help for available commands[/dim]")

        except DraftsmithError as e:
            console.print(f"[red]{e}[/red]")
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")

    def plan(self, message: str, skill: Optional[str] = None, batch: Optional[BatchTarget] = None) -> None:
        """Create a plan and show its context and estimated cost."""
        plan = self.pipeline.create_plan(self.current_scope(), message, skill or self.skill)
        if self.last_plan is not None:
            self.pipeline.cancel(self.last_plan.id)
        self.last_plan = plan
        self.last_batch = batch
        self.last_message = message
        self.conversation.update_plan(plan.model_dump(mode="json"))

        table = Table(title=f"Plan {plan.id[:8]} ({plan.skill}, {plan.model})")
        table.add_column("Context file")
        table.add_column("Tokens", justify="right")
        table.add_column("Mode")
        for info in plan.context_files:
            table.add_row(info.path, str(info.tokens_estimate), info.inclusion)
        console.print(table)
        console.print(
            f"Total tokens: {plan.total_tokens_estimate}  "
            f"Estimated input cost: [bold]{plan.estimated_cost_display}[/bold]"
        )
        if batch:
            console.print(f"[dim]Batch: {len(batch.items)} {batch.keyword.lower()} entries[/dim]")
        console.print("\n[yellow]Use /confirm to run this plan or /cancel to drop it[/yellow]")

    def confirm(self) -> None:
        """Execute the pending plan, streaming output to the console."""
        if not self.last_plan:
            console.print("[red]No plan to run. Use /plan first.[/red]")
            return

        plan, batch = self.last_plan, self.last_batch
        self.last_plan = None
        self.last_batch = None

        task = self.loop.create_task(self.pipeline.execute(
            plan.id,
            self.conversation.to_history(),
            on_chunk=lambda text: console.print(text, end="", markup=False, highlight=False),
            batch=batch,
        ))
        try:
            outcome = self.loop.run_until_complete(task)
        except KeyboardInterrupt:
            self.pipeline.cancel(plan.id)
            try:
                outcome = self.loop.run_until_complete(task)
            except KeyboardInterrupt:
                # The interrupt landed inside the task and is stored on it
                outcome = None
        console.print()

        if outcome is None or outcome.status == "cancelled":
            console.print("[yellow]Generation cancelled; nothing was recorded or written[/yellow]")
            return

        self.conversation.record_exchange(self.last_message, outcome.result.full_text)
        self.logger.log_message("assistant", outcome.result.full_text)

        for write in outcome.writes:
            if write.success:
                console.print(f"[green]✓ {write.status} {write.path}[/green]")
            else:
                console.print(f"[red]✗ {write.canonical_path}: {write.error}[/red]")
        if outcome.extraction and outcome.extraction.missing:
            missing = ", ".join(str(n) for n in outcome.extraction.missing)
            console.print(f"[yellow]Missing from response: {missing}[/yellow]")
        console.print(f"[dim]{outcome.summary()}[/dim]")

    def quick(self, action: str, message: str) -> None:
        result = self.loop.run_until_complete(
            self.pipeline.quick_complete(self.current_scope(), None, action, message)
        )
        console.print(Panel(result.text, title=f"Quick: {action}", border_style="green"))
        cost = format_cost(result.cost if result.cost_known else None)
        console.print(f"[dim]{result.model} {result.input_tokens}+{result.output_tokens} tokens, {cost}[/dim]")

    def batch(self, args: str) -> None:
        """Handle ``/batch <keyword> <n:label,...> <message>``."""
        parts = args.split(maxsplit=2)
        if len(parts) < 3:
            console.print("[red]Usage: /batch <keyword> <n:label,...> <message>[/red]")
            return
        keyword, entity_list, message = parts
        target = build_batch_target(keyword, parse_entities(entity_list), book=self.scope_ids["book"])
        skill = KEYWORD_SKILLS.get(target.keyword, self.skill)
        self.plan(message, skill=skill, batch=target)

    def set_skill(self, name: str) -> None:
        if not name:
            for skill in list_skills():
                marker = "*" if skill.name == (self.skill or "brainstorm") else " "
                console.print(f" {marker} {skill.name}: {skill.description}")
            return
        if name not in {skill.name for skill in list_skills()}:
            console.print(f"[red]Unknown skill: {name}[/red]")
            return
        self.skill = name
        console.print(f"[green]Skill: {name}[/green]")

    def set_scope(self, args: str) -> None:
        """Handle ``/scope book=.. chapter=..``; ``/scope clear`` resets it."""
        if args.strip() == "clear":
            self.scope_ids = {key: None for key in SCOPE_KEYS}
        for pair in args.split():
            key, sep, value = pair.partition("=")
            if not sep:
                continue
            if key not in SCOPE_KEYS:
                console.print(f"[red]Unknown scope key: {key}[/red]")
                return
            self.scope_ids[key] = value or None
        scope = ", ".join(f"{k}={v}" for k, v in self.scope_ids.items() if v) or "project"
        console.print(f"[dim]Scope: {scope}[/dim]")

    def set_override(self, args: str) -> None:
        parts = args.split()
        if len(parts) != 2:
            console.print("[red]Usage: /override <path> auto|exclude|force[/red]")
            return
        path, mode = parts
        overrides = ContextOverrides.load(self.project_root)
        overrides.set(self.project_root / path, InclusionMode(mode))
        overrides.save()
        console.print(f"[green]{path}: {mode}[/green]")

    def show_cost(self, args: str) -> None:
        accountant = self.pipeline.accountant
        parts = args.split()
        if parts[:1] == ["reset"]:
            which = parts[1] if len(parts) > 1 else "session"
            if which == "project":
                accountant.reset_project()
            else:
                accountant.reset_session()
            console.print(f"[yellow]Reset {which} cost[/yellow]")
            return
        console.print(f"Session: {format_cost(accountant.session_total)}")
        console.print(f"Project: {format_cost(accountant.project_total)}")

    def current_scope(self):
        return self.pipeline.scope(**self.scope_ids)

    def show_help(self) -> None:
        """Show help message."""
        help_text = """
**Available Commands:**

- `/plan <message>` - Plan a generation and show its estimated cost
- `/confirm` - Run the pending plan (Ctrl-C cancels)
- `/cancel` - Drop the pending plan
- `/quick <action> <message>` - Single-shot edit, nothing is written
- `/batch <keyword> <n:label,...> <message>` - Plan a multi-document generation
- `/skill [name]` - Show or switch the skill used by /plan
- `/scope book=.. chapter=.. scene=.. character=..` - Set the context scope
- `/override <path> auto|exclude|force` - Control whether a file is used as context
- `/cost` - Show session and project cost
- `/cost reset session|project` - Reset a cost total
- `/models` - List known models
- `/config` - Show current configuration
- `/log` - Show session log path
- `/help` - Show this help message
- `/quit` - Exit Draftsmith

**Examples:**

```
/scope book=harbor-lights
/plan Three possible openings for chapter one
/batch CHARACTER 1:Mara,2:Tobin Sketch the two leads
/override notes/old-ideas.md exclude
```
        """
        console.print(Markdown(help_text))


@app.command()
def main(
    path: Optional[str] = typer.Argument(
        None,
        help="Project path (default: current directory)"
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model", "-m",
        help="Default model (e.g., anthropic:claude-sonnet-4-5)"
    ),
    skill: Optional[str] = typer.Option(
        None,
        "--skill", "-s",
        help="Skill used by /plan (e.g., draft, outline)"
    ),
) -> None:
    """Start Draftsmith interactive session."""
    # Determine project root
    project_root = Path(path).resolve() if path else Path.cwd()

    if not project_root.exists():
        console.print(f"[red]Error: Path does not exist: {project_root}[/red]")
        sys.exit(1)

    if not project_root.is_dir():
        console.print(f"[red]Error: Path is not a directory: {project_root}[/red]")
        sys.exit(1)

    # Load configuration
    try:
        config = Config.load(project_root)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    # Override model if specified
    if model:
        config.default_model = model

    # Validate configuration
    errors = config.validate()
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        sys.exit(1)

    # Start REPL
    try:
        repl = REPL(project_root, config, skill)
        repl.start()
    except DraftsmithError as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    app()
