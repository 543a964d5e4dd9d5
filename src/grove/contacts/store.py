"""SQLite storage for contacts and their child records."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from ..errors import NotFoundError, PersistenceError, ValidationError
from .models import (
    Cadence,
    Contact,
    FamilyMember,
    Interaction,
    InteractionType,
    Preference,
    PreferenceCategory,
    Seedling,
    SeedlingStatus,
    utcnow,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS contacts (
    id                     INTEGER PRIMARY KEY AUTOINCREMENT,
    name                   TEXT NOT NULL,
    name_key               TEXT NOT NULL,
    avatar_url             TEXT,
    location               TEXT,
    birthday               TEXT,
    cadence                TEXT NOT NULL DEFAULT 'REGULARLY',
    socials                TEXT,
    cached_briefing        TEXT,
    briefing_generated_at  TEXT,
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_contacts_name_key ON contacts(name_key);

CREATE TABLE IF NOT EXISTS preferences (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    contact_id  INTEGER NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
    category    TEXT NOT NULL,
    content     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS interactions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    contact_id  INTEGER NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
    type        TEXT NOT NULL,
    summary     TEXT NOT NULL,
    date        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_interactions_contact_date
    ON interactions(contact_id, date);

CREATE TABLE IF NOT EXISTS seedlings (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    contact_id  INTEGER NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
    content     TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'ACTIVE',
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS family_members (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    contact_id  INTEGER NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    relation    TEXT NOT NULL
);
"""

CONTACT_FIELDS = ("name", "avatar_url", "location", "birthday", "cadence", "socials")


@dataclass
class ContactChangeSet:
    """Every write a single merge wants to apply, as one unit.

    Attributes:
        contact: The new contact (id None) or the existing target.
        contact_updates: Column values to change on an existing contact.
        preferences: Preferences to insert.
        family_members: Family members to insert.
        seedlings: Seedlings to insert.
        interactions: Interactions to insert.
        touched_at: Value written to the contact's updated_at.
    """

    contact: Contact
    contact_updates: dict[str, Any] = field(default_factory=dict)
    preferences: list[Preference] = field(default_factory=list)
    family_members: list[FamilyMember] = field(default_factory=list)
    seedlings: list[Seedling] = field(default_factory=list)
    interactions: list[Interaction] = field(default_factory=list)
    touched_at: datetime = field(default_factory=utcnow)

    @property
    def is_new_contact(self) -> bool:
        return self.contact.id is None

    @property
    def has_changes(self) -> bool:
        """True if applying this change set writes anything."""
        return bool(
            self.is_new_contact
            or self.contact_updates
            or self.preferences
            or self.family_members
            or self.seedlings
            or self.interactions
        )


def _to_text(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    # Stored datetimes are UTC so text ordering matches time ordering
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def _to_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def name_key(name: str) -> str:
    """Lookup key for a contact name: trimmed and Unicode casefolded."""
    return name.strip().casefold()


class ContactStore:
    """Persistent storage for contacts using SQLite.

    A contact owns its preferences, interactions, seedlings and family
    members; deleting the contact deletes them too.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def init_db(self) -> None:
        """Create the tables if they don't exist."""
        conn = self._get_connection()
        conn.executescript(SCHEMA)
        conn.commit()

    # Contacts

    def create_contact(self, contact: Contact) -> Contact:
        """Insert a contact without children.

        Returns:
            The stored contact with id and timestamps.
        """
        conn = self._get_connection()
        now = utcnow()
        with conn:
            contact_id = self._insert_contact(conn, contact, now)
        return self.get_contact(contact_id)

    def get_contact(
        self,
        contact_id: int,
        interaction_limit: int | None = None,
    ) -> Contact:
        """Get a contact with all child records loaded.

        Args:
            contact_id: The contact's id.
            interaction_limit: Keep only this many most recent interactions.

        Raises:
            NotFoundError: If no contact has this id.
        """
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Contact {contact_id} not found")
        return self._load_children(self._row_to_contact(row), interaction_limit)

    def find_by_name(self, name: str) -> Contact | None:
        """Find a contact by case-insensitive exact name match.

        When several contacts share a name, the oldest one wins.
        """
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM contacts WHERE name_key = ? ORDER BY id LIMIT 1",
            (name_key(name),),
        ).fetchone()
        if row is None:
            return None
        return self._load_children(self._row_to_contact(row))

    def list_contacts(self) -> list[Contact]:
        """List contacts with their preferences and last interaction date.

        Returns:
            Contacts ordered by most recently updated first.
        """
        conn = self._get_connection()
        rows = conn.execute(
            """
            SELECT c.*, (
                SELECT MAX(i.date) FROM interactions i WHERE i.contact_id = c.id
            ) AS last_interaction_at
            FROM contacts c
            ORDER BY c.updated_at DESC, c.id DESC
            """
        ).fetchall()

        contacts = []
        for row in rows:
            contact = self._row_to_contact(row)
            contact.last_interaction_at = _to_datetime(row["last_interaction_at"])
            contact.preferences = self._fetch_preferences(conn, contact.id)
            contacts.append(contact)
        return contacts

    def update_contact(self, contact_id: int, **fields: Any) -> Contact:
        """Update contact columns and bump updated_at.

        Args:
            contact_id: The contact's id.
            **fields: Any of name, avatar_url, location, birthday, cadence, socials.

        Raises:
            NotFoundError: If no contact has this id.
            ValidationError: On an unknown field or an empty name.
        """
        unknown = set(fields) - set(CONTACT_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown contact fields: {', '.join(sorted(unknown))}")
        if "name" in fields and not str(fields["name"] or "").strip():
            raise ValidationError("Contact name cannot be empty")

        conn = self._get_connection()
        with conn:
            self._require_contact(conn, contact_id)
            self._update_contact_row(conn, contact_id, fields, utcnow())
        return self.get_contact(contact_id)

    def delete_contact(self, contact_id: int) -> bool:
        """Delete a contact and all its child records.

        Returns:
            True if a contact was deleted, False otherwise.
        """
        conn = self._get_connection()
        with conn:
            cursor = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
        return cursor.rowcount > 0

    # Children

    def add_interaction(self, contact_id: int, interaction: Interaction) -> Interaction:
        """Log an interaction directly and bump the contact's updated_at.

        Raises:
            NotFoundError: If no contact has this id.
        """
        conn = self._get_connection()
        with conn:
            self._require_contact(conn, contact_id)
            interaction.id = self._insert_interaction(conn, contact_id, interaction)
            self._update_contact_row(conn, contact_id, {}, utcnow())
        interaction.contact_id = contact_id
        return interaction

    def add_seedling(self, contact_id: int, content: str) -> Seedling:
        """Create an ACTIVE seedling for a contact.

        Raises:
            NotFoundError: If no contact has this id.
            ValidationError: If content is empty.
        """
        if not content or not content.strip():
            raise ValidationError("Seedling content cannot be empty")

        seedling = Seedling(content=content.strip())
        conn = self._get_connection()
        with conn:
            self._require_contact(conn, contact_id)
            seedling.id = self._insert_seedling(conn, contact_id, seedling)
            self._update_contact_row(conn, contact_id, {}, utcnow())
        seedling.contact_id = contact_id
        return seedling

    def get_seedling(self, seedling_id: int) -> Seedling:
        """Get a seedling by id.

        Raises:
            NotFoundError: If no seedling has this id.
        """
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM seedlings WHERE id = ?", (seedling_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Seedling {seedling_id} not found")
        return self._row_to_seedling(row)

    def set_seedling_status(self, seedling_id: int, status: SeedlingStatus) -> Seedling:
        """Move a seedling to a new status.

        Raises:
            NotFoundError: If no seedling has this id.
            ValidationError: On PLANTED -> ACTIVE.
        """
        seedling = self.get_seedling(seedling_id)
        if not seedling.transition_to(status):
            return seedling

        conn = self._get_connection()
        with conn:
            conn.execute(
                "UPDATE seedlings SET status = ? WHERE id = ?",
                (seedling.status.value, seedling_id),
            )
            self._update_contact_row(conn, seedling.contact_id, {}, utcnow())
        return seedling

    def plant_seedling(self, seedling_id: int) -> Seedling:
        """Mark a seedling as PLANTED."""
        return self.set_seedling_status(seedling_id, SeedlingStatus.PLANTED)

    # Merge commit

    def apply_changeset(self, changeset: ContactChangeSet) -> Contact:
        """Apply a merge's writes in a single transaction.

        Either the contact write, every child insert and the updated_at bump
        all land, or none do.

        Args:
            changeset: The writes to apply.

        Returns:
            The stored contact with children reloaded.

        Raises:
            NotFoundError: If the target contact no longer exists.
            PersistenceError: If any write failed; nothing is persisted.
        """
        conn = self._get_connection()
        try:
            with conn:
                if changeset.is_new_contact:
                    contact_id = self._insert_contact(
                        conn, changeset.contact, changeset.touched_at
                    )
                else:
                    contact_id = changeset.contact.id
                    self._require_contact(conn, contact_id)
                    self._update_contact_row(
                        conn, contact_id, changeset.contact_updates, changeset.touched_at
                    )
                self._insert_children(conn, contact_id, changeset)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save changes: {e}") from e

        return self.get_contact(contact_id)

    def _insert_children(
        self, conn: sqlite3.Connection, contact_id: int, changeset: ContactChangeSet
    ) -> None:
        """Insert all child rows of a change set on an open transaction."""
        for preference in changeset.preferences:
            self._insert_preference(conn, contact_id, preference)
        for member in changeset.family_members:
            self._insert_family_member(conn, contact_id, member)
        for seedling in changeset.seedlings:
            self._insert_seedling(conn, contact_id, seedling)
        for interaction in changeset.interactions:
            self._insert_interaction(conn, contact_id, interaction)

    # Briefing cache

    def save_briefing(self, contact_id: int, briefing_json: str, generated_at: datetime) -> None:
        """Cache a generated briefing without touching updated_at."""
        conn = self._get_connection()
        with conn:
            cursor = conn.execute(
                "UPDATE contacts SET cached_briefing = ?, briefing_generated_at = ? WHERE id = ?",
                (briefing_json, _to_text(generated_at), contact_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Contact {contact_id} not found")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # Row helpers

    def _require_contact(self, conn: sqlite3.Connection, contact_id: int | None) -> None:
        row = conn.execute("SELECT 1 FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Contact {contact_id} not found")

    def _insert_contact(self, conn: sqlite3.Connection, contact: Contact, now: datetime) -> int:
        cursor = conn.execute(
            """
            INSERT INTO contacts
                (name, name_key, avatar_url, location, birthday, cadence, socials,
                 created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                contact.name.strip(),
                name_key(contact.name),
                contact.avatar_url,
                contact.location,
                _to_text(contact.birthday),
                contact.cadence.value,
                json.dumps(contact.socials) if contact.socials else None,
                _to_text(now),
                _to_text(now),
            ),
        )
        return cursor.lastrowid

    def _update_contact_row(
        self,
        conn: sqlite3.Connection,
        contact_id: int | None,
        fields: dict[str, Any],
        now: datetime,
    ) -> None:
        columns = ["updated_at = ?"]
        values: list[Any] = [_to_text(now)]

        for name, value in fields.items():
            if name == "cadence" and isinstance(value, Cadence):
                value = value.value
            elif name == "birthday":
                value = _to_text(value)
            elif name == "socials":
                value = json.dumps(value) if value else None
            elif name == "name":
                value = value.strip()
                columns.append("name_key = ?")
                values.append(name_key(value))
            columns.append(f"{name} = ?")
            values.append(value)

        values.append(contact_id)
        conn.execute(f"UPDATE contacts SET {', '.join(columns)} WHERE id = ?", values)

    def _insert_preference(
        self, conn: sqlite3.Connection, contact_id: int, preference: Preference
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO preferences (contact_id, category, content) VALUES (?, ?, ?)",
            (contact_id, preference.category.value, preference.content),
        )
        return cursor.lastrowid

    def _insert_family_member(
        self, conn: sqlite3.Connection, contact_id: int, member: FamilyMember
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO family_members (contact_id, name, relation) VALUES (?, ?, ?)",
            (contact_id, member.name, member.relation),
        )
        return cursor.lastrowid

    def _insert_seedling(
        self, conn: sqlite3.Connection, contact_id: int, seedling: Seedling
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO seedlings (contact_id, content, status, created_at) VALUES (?, ?, ?, ?)",
            (contact_id, seedling.content, seedling.status.value, _to_text(seedling.created_at)),
        )
        return cursor.lastrowid

    def _insert_interaction(
        self, conn: sqlite3.Connection, contact_id: int, interaction: Interaction
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO interactions (contact_id, type, summary, date) VALUES (?, ?, ?, ?)",
            (contact_id, interaction.type.value, interaction.summary, _to_text(interaction.date)),
        )
        return cursor.lastrowid

    def _fetch_preferences(self, conn: sqlite3.Connection, contact_id: int) -> list[Preference]:
        rows = conn.execute(
            "SELECT * FROM preferences WHERE contact_id = ? ORDER BY id", (contact_id,)
        ).fetchall()
        return [
            Preference(
                id=row["id"],
                contact_id=row["contact_id"],
                category=PreferenceCategory(row["category"]),
                content=row["content"],
            )
            for row in rows
        ]

    def _load_children(self, contact: Contact, interaction_limit: int | None = None) -> Contact:
        """Fill a contact's child collections from the database."""
        conn = self._get_connection()
        contact.preferences = self._fetch_preferences(conn, contact.id)

        query = "SELECT * FROM interactions WHERE contact_id = ? ORDER BY date DESC, id DESC"
        params: tuple[Any, ...] = (contact.id,)
        if interaction_limit is not None:
            query += " LIMIT ?"
            params = (contact.id, interaction_limit)
        contact.interactions = [
            Interaction(
                id=row["id"],
                contact_id=row["contact_id"],
                type=InteractionType(row["type"]),
                summary=row["summary"],
                date=_to_datetime(row["date"]),
            )
            for row in conn.execute(query, params).fetchall()
        ]

        contact.seedlings = [
            self._row_to_seedling(row)
            for row in conn.execute(
                "SELECT * FROM seedlings WHERE contact_id = ? ORDER BY created_at DESC, id DESC",
                (contact.id,),
            ).fetchall()
        ]

        contact.family_members = [
            FamilyMember(
                id=row["id"],
                contact_id=row["contact_id"],
                name=row["name"],
                relation=row["relation"],
            )
            for row in conn.execute(
                "SELECT * FROM family_members WHERE contact_id = ? ORDER BY id", (contact.id,)
            ).fetchall()
        ]

        contact.last_interaction_at = contact.interactions[0].date if contact.interactions else None
        return contact

    def _row_to_seedling(self, row: sqlite3.Row) -> Seedling:
        """Convert a database row to a Seedling."""
        return Seedling(
            id=row["id"],
            contact_id=row["contact_id"],
            content=row["content"],
            status=SeedlingStatus(row["status"]),
            created_at=_to_datetime(row["created_at"]),
        )

    def _row_to_contact(self, row: sqlite3.Row) -> Contact:
        """Convert a database row to a Contact without children."""
        return Contact(
            id=row["id"],
            name=row["name"],
            avatar_url=row["avatar_url"],
            location=row["location"],
            birthday=date.fromisoformat(row["birthday"]) if row["birthday"] else None,
            cadence=Cadence(row["cadence"]),
            socials=json.loads(row["socials"]) if row["socials"] else {},
            cached_briefing=row["cached_briefing"],
            briefing_generated_at=_to_datetime(row["briefing_generated_at"]),
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )
