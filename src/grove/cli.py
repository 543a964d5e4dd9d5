"""CLI interface for Grove."""

import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from groq import AsyncGroq

from .briefing import Briefing, BriefingContextAssembler, BriefingNarrator, BriefingService
from .config import GroveConfig, load_config, save_config
from .contacts import (
    Cadence,
    Contact,
    ContactStore,
    HealthStatus,
    Interaction,
    InteractionType,
    PreferenceCategory,
    contact_health,
    format_last_contact,
    rank_contacts,
)
from .contacts.dates import (
    calculate_age,
    days_until_birthday,
    has_upcoming_birthday,
    parse_date_input,
)
from .contacts.models import utcnow
from .errors import GroveError, NotFoundError, ValidationError
from .ingest import (
    ContactExtractor,
    ContactMergeEngine,
    IngestRequest,
    IngestService,
    MergeResult,
)
from .llm_client import GroqLLMClient
from .logging import JSONLLogger, configure_logger
from .prompts import load_prompt

BANNER = """
╔══════════════════════════════════════════╗
║              🌱 Grove v0.1.0             ║
║     Tend the relationships that matter   ║
╚══════════════════════════════════════════╝

Type a note about someone to record it, e.g.
  "Had coffee with Mia Chen, she just moved to Seattle"

Commands:
  /list [status]                - Contacts by health (flourishing, needs_attention, wilting)
  /show <name>                  - Everything recorded about a contact
  /brief <name>                 - Conversation briefing for a contact
  /log <name>: <type> <summary> - Log a CALL, TEXT, MEET or VOICE interaction
  /seed <name>: <text>          - Add a follow-up topic
  /plant <id>                   - Mark a seedling as planted
  /cadence <name> <cadence>     - Set how often to stay in touch (often, regularly, seldomly, rarely)
  /birthday <name> <YYYY-MM-DD> - Set a birthday
  /delete <name>                - Delete a contact and everything about them
  /default <cadence>            - Cadence for new contacts
  /help                         - Show this help
  /exit, /quit                  - Exit the CLI
"""


def build_services(
    config: GroveConfig,
    groq_client: AsyncGroq,
    event_logger: JSONLLogger,
) -> tuple[ContactStore, IngestService, BriefingService]:
    """Wire the store, ingestion and briefing services from config."""
    store = ContactStore(config.db_path)
    store.init_db()

    extraction_prompt = load_prompt("extraction")
    image_prompt = load_prompt("image_extraction")
    briefing_prompt = load_prompt("briefing")

    extractor = ContactExtractor(
        GroqLLMClient(
            groq_client,
            model=config.extraction_model,
            temperature=extraction_prompt.temperature,
            usage_logger=event_logger,
        ),
        image_llm=GroqLLMClient(
            groq_client,
            model=config.vision_model,
            temperature=image_prompt.temperature,
            usage_logger=event_logger,
        ),
        text_prompt=extraction_prompt,
        image_prompt=image_prompt,
    )
    engine = ContactMergeEngine(store, default_cadence=config.default_cadence)
    ingest = IngestService(extractor, engine, event_logger)

    narrator = BriefingNarrator(
        GroqLLMClient(
            groq_client,
            model=config.briefing_model,
            temperature=briefing_prompt.temperature,
            usage_logger=event_logger,
        ),
        prompt=briefing_prompt,
    )
    assembler = BriefingContextAssembler(
        store,
        thresholds=config.cadence_thresholds,
        interaction_limit=config.briefing_interaction_limit,
    )
    briefings = BriefingService(store, assembler, narrator, event_logger)

    return store, ingest, briefings


def format_preview(result: MergeResult) -> str:
    """Format an ingestion preview for display."""
    extraction = result.extraction
    output = ["\n" + "─" * 40]

    if result.is_new_contact:
        output.append(f"👤 New contact: {result.contact_name}")
    else:
        output.append(f"👤 {result.contact_name} (#{result.contact_id})")

    if extraction.location:
        output.append(f"📍 {extraction.location}")
    for preference in extraction.preferences or []:
        icon = "💚" if preference.category.value == "ALWAYS" else "🚫"
        output.append(f"{icon} {preference.content}")
    for member in extraction.family_members or []:
        relation = f" ({member.relation})" if member.relation else ""
        output.append(f"👪 {member.name}{relation}")
    for seedling in extraction.seedlings or []:
        output.append(f"🌱 {seedling}")
    if extraction.interaction_summary:
        kind = extraction.interaction_type.value if extraction.interaction_type else "VOICE"
        output.append(f"💬 {kind}: {extraction.interaction_summary}")

    output.append("─" * 40)
    output.append(result.summary)

    skipped = sum(result.skipped.values())
    if skipped:
        output.append(f"(already known: {skipped} fact(s) skipped)")

    return "\n".join(output)


def format_briefing(name: str, briefing: Briefing, from_cache: bool) -> str:
    """Format a briefing for display."""
    output = ["\n" + "─" * 40, f"📋 Briefing: {name}" + (" (cached)" if from_cache else "")]
    output.append("")
    output.append(briefing.relationship_summary)

    sections = [
        ("Recent highlights", briefing.recent_highlights),
        ("Conversation starters", briefing.conversation_starters),
        ("Upcoming", briefing.upcoming_milestones),
    ]
    for title, items in sections:
        if items:
            output.append("")
            output.append(f"{title}:")
            output.extend(f"  • {item}" for item in items)

    output.append("─" * 40)
    return "\n".join(output)


HEALTH_ICONS = {
    HealthStatus.FLOURISHING: "🌳",
    HealthStatus.NEEDS_ATTENTION: "🌿",
    HealthStatus.WILTING: "🥀",
}

RECENT_INTERACTIONS = 5


def format_contact(contact: Contact, config: GroveConfig, now: datetime) -> str:
    """Format a contact's profile for display."""
    health = contact_health(contact, now, config.cadence_thresholds)
    due_days = config.thresholds_for(contact.cadence).due_days
    last = format_last_contact(contact.last_interaction_at, now)

    output = ["\n" + "─" * 40]
    output.append(f"{HEALTH_ICONS[health]} #{contact.id} {contact.name} - {last}")
    if contact.location:
        output.append(f"📍 {contact.location}")
    output.append(f"🔁 {contact.cadence.value.lower()} (every {due_days} days)")
    if contact.birthday:
        today = now.date()
        age = calculate_age(contact.birthday, today)
        days = days_until_birthday(contact.birthday, today)
        output.append(f"🎂 {contact.birthday.isoformat()} (age {age}, next in {days} days)")

    for preference in contact.preferences_in(PreferenceCategory.ALWAYS):
        output.append(f"💚 {preference.content}")
    for preference in contact.preferences_in(PreferenceCategory.NEVER):
        output.append(f"🚫 {preference.content}")
    for member in contact.family_members:
        relation = f" ({member.relation})" if member.relation else ""
        output.append(f"👪 {member.name}{relation}")
    for seedling in contact.active_seedlings:
        output.append(f"🌱 [{seedling.id}] {seedling.content}")
    for interaction in contact.interactions[:RECENT_INTERACTIONS]:
        day = interaction.date.date().isoformat()
        output.append(f"💬 {day} {interaction.type.value}: {interaction.summary}")

    output.append("─" * 40)
    return "\n".join(output)


def _parse_cadence(value: str) -> Cadence:
    try:
        return Cadence(value.strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown cadence: {value}") from None


def _split_last_word(argument: str, usage: str) -> tuple[str, str]:
    """Split '<name> <value>' where the name may contain spaces."""
    name, _, value = argument.strip().rpartition(" ")
    if not name.strip() or not value:
        raise ValidationError(usage)
    return name.strip(), value


def _split_colon(argument: str, usage: str) -> tuple[str, str]:
    """Split '<name>: <text>'."""
    name, separator, text = argument.partition(":")
    if not separator or not name.strip() or not text.strip():
        raise ValidationError(usage)
    return name.strip(), text.strip()


class CLI:
    """Interactive command-line interface for Grove."""

    def __init__(
        self,
        store: ContactStore,
        ingest: IngestService,
        briefings: BriefingService,
        config: GroveConfig | None = None,
        input_fn: Callable[[str], str] = input,
        config_path: Path | None = None,
    ) -> None:
        self.store = store
        self.ingest = ingest
        self.briefings = briefings
        self.config = config or GroveConfig()
        self.config_path = config_path
        self._input = input_fn

    def _confirm(self, question: str) -> bool:
        return self._input(f"{question} (y/n): ").strip().lower() in ("y", "yes")

    async def _process_note(self, note: str) -> None:
        """Preview a note, then commit it if the user confirms."""
        preview = await self.ingest.ingest(IngestRequest(raw_input=note, dry_run=True))
        print(format_preview(preview))

        if not preview.changed:
            print("Nothing new to save.")
            return

        if not self._confirm("Save?"):
            print("Discarded.")
            return

        result = await self.ingest.ingest(
            IngestRequest(
                contact_id=preview.contact_id,
                extraction=preview.extraction,
            )
        )
        print(f"✓ {result.summary}")

    def _list(self, argument: str) -> None:
        status = None
        if argument:
            try:
                status = HealthStatus(argument.lower().replace(" ", "_"))
            except ValueError:
                raise ValidationError(f"Unknown status: {argument}") from None

        now = utcnow()
        ranked = rank_contacts(
            self.store.list_contacts(), now, status, self.config.cadence_thresholds
        )
        if not ranked:
            print("No contacts yet.")
            return

        for contact, health in ranked:
            last = format_last_contact(contact.last_interaction_at, now)
            cake = " 🎂" if has_upcoming_birthday(contact.birthday, now.date()) else ""
            print(f"{HEALTH_ICONS[health]} #{contact.id} {contact.name} - {last}{cake}")

    async def _brief(self, name: str) -> None:
        if not name:
            raise ValidationError("Usage: /brief <name>")

        contact = self.store.find_by_name(name)
        if contact is None:
            print(f"No contact named {name}")
            return

        briefing, from_cache = await self.briefings.brief(contact.id)
        print(format_briefing(contact.name, briefing, from_cache))

    def _plant(self, argument: str) -> None:
        try:
            seedling_id = int(argument)
        except ValueError:
            raise ValidationError("Usage: /plant <seedling id>") from None

        seedling = self.store.plant_seedling(seedling_id)
        print(f"🌳 Planted: {seedling.content}")

    def _find(self, name: str, usage: str) -> Contact:
        if not name:
            raise ValidationError(usage)
        contact = self.store.find_by_name(name)
        if contact is None:
            raise NotFoundError(f"No contact named {name}")
        return contact

    def _show(self, name: str) -> None:
        contact = self._find(name, "Usage: /show <name>")
        print(format_contact(contact, self.config, utcnow()))

    def _set_cadence(self, argument: str) -> None:
        usage = "Usage: /cadence <name> <often|regularly|seldomly|rarely>"
        name, value = _split_last_word(argument, usage)
        cadence = _parse_cadence(value)
        contact = self._find(name, usage)
        self.store.update_contact(contact.id, cadence=cadence)
        print(f"🔁 {contact.name} is now {cadence.value.lower()}")

    def _set_birthday(self, argument: str) -> None:
        usage = "Usage: /birthday <name> <YYYY-MM-DD>"
        name, value = _split_last_word(argument, usage)
        birthday = parse_date_input(value).date()
        contact = self._find(name, usage)
        self.store.update_contact(contact.id, birthday=birthday)
        print(f"🎂 {contact.name}: {birthday.isoformat()}")

    def _log(self, argument: str) -> None:
        usage = "Usage: /log <name>: <call|text|meet|voice> <summary>"
        name, text = _split_colon(argument, usage)
        kind, _, summary = text.partition(" ")
        if not summary.strip():
            raise ValidationError(usage)
        try:
            interaction_type = InteractionType(kind.upper())
        except ValueError:
            raise ValidationError(f"Unknown interaction type: {kind}") from None

        contact = self._find(name, usage)
        self.store.add_interaction(
            contact.id, Interaction(type=interaction_type, summary=summary.strip())
        )
        print(f"💬 Logged {interaction_type.value} with {contact.name}")

    def _seed(self, argument: str) -> None:
        usage = "Usage: /seed <name>: <text>"
        name, text = _split_colon(argument, usage)
        contact = self._find(name, usage)
        seedling = self.store.add_seedling(contact.id, text)
        print(f"🌱 [{seedling.id}] {seedling.content}")

    def _delete(self, name: str) -> None:
        contact = self._find(name, "Usage: /delete <name>")
        if not self._confirm(f"Delete {contact.name} and everything recorded about them?"):
            print("Kept.")
            return
        self.store.delete_contact(contact.id)
        print(f"🗑 Deleted {contact.name}")

    def _set_default_cadence(self, argument: str) -> None:
        if not argument:
            raise ValidationError("Usage: /default <often|regularly|seldomly|rarely>")
        cadence = _parse_cadence(argument)
        self.config.default_cadence = cadence
        self.ingest.engine.default_cadence = cadence
        save_config(self.config, self.config_path)
        print(f"New contacts will be {cadence.value.lower()}")

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        name, _, argument = command.strip().partition(" ")
        name = name.lower()
        argument = argument.strip()

        if name in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            return False

        if name == "/help":
            print(BANNER)
        elif name == "/list":
            self._list(argument)
        elif name == "/brief":
            await self._brief(argument)
        elif name == "/plant":
            self._plant(argument)
        elif name == "/show":
            self._show(argument)
        elif name == "/cadence":
            self._set_cadence(argument)
        elif name == "/birthday":
            self._set_birthday(argument)
        elif name == "/log":
            self._log(argument)
        elif name == "/seed":
            self._seed(argument)
        elif name == "/delete":
            self._delete(argument)
        elif name == "/default":
            self._set_default_cadence(argument)
        else:
            print(f"Unknown command: {name}. Type /help for commands.")

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)

        try:
            while True:
                try:
                    user_input = self._input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_note(user_input)

                except GroveError as e:
                    print(f"\n❌ {e.message}")

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    try:
                        if self._confirm("Exit?"):
                            print("👋 Goodbye!")
                            break
                    except (KeyboardInterrupt, EOFError):
                        print("\n👋 Goodbye!")
                        break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            self.store.close()


async def run_cli() -> None:
    """Run the CLI with configuration from ~/.grove/config.json."""
    config = load_config()
    event_logger = configure_logger(config.log_dir)

    if not os.getenv("GROQ_API_KEY"):
        print("❌ Error: GROQ_API_KEY environment variable not set")
        print("Please set it in your .env file or environment")
        return

    groq_client = AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
    store, ingest, briefings = build_services(config, groq_client, event_logger)

    cli = CLI(store, ingest, briefings, config=config)
    await cli.run()
