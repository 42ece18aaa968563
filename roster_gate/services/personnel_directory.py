"""
Authorized personnel directory.

Registration candidates are looked up by the keyed hash of their military
ID (see ``identifier_hasher``); the roster is never scanned and the hash,
salt and verifier are never returned to callers.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence

from roster_gate.clients.base import PersonnelStore
from roster_gate.models.internal_models import (
    AuthorizedPersonnelRecord,
    PersonnelEntry,
    PersonnelProfile,
    RosterImportResult,
)
from roster_gate.services.errors import (
    AlreadyRegisteredError,
    DuplicateIdentifierError,
    InfrastructureError,
    PersonnelNotFoundError,
    ValidationError,
)
from roster_gate.services.identifier_hasher import IdentifierHasher, normalize_identifier
from roster_gate.utils.clock import utc_now
from roster_gate.utils.phone_utils import mask_phone_number, validate_phone_number

logger = logging.getLogger(__name__)

MILITARY_RANKS = (
    'סמל',
    'רב סמל',
    'סמל ראשון',
    'רס"ל',
    'רס"ר',
    'רס"מ',
    'סג"מ',
    'סגן',
    'סרן',
)

# Spreadsheet rows are 1-based and row 1 is the header
FIRST_DATA_ROW = 2


class PersonnelDirectory:
    """Hashed-key access to the authorized personnel roster."""

    def __init__(
        self,
        store: PersonnelStore,
        hasher: IdentifierHasher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.hasher = hasher
        self.clock = clock

    async def _load(self, identifier: str) -> AuthorizedPersonnelRecord:
        """Normalize, hash and point-read; raise PersonnelNotFoundError on a miss."""
        normalized = normalize_identifier(identifier)
        key = self.hasher.hash(normalized)

        try:
            record = await self.store.get(key)
        except Exception as e:
            logger.error(f"Roster lookup failed: {e}")
            raise InfrastructureError(f"Personnel store unavailable: {e}")

        if record is None:
            logger.info("Military ID not found in authorized personnel")
            raise PersonnelNotFoundError("No roster entry for this identifier")

        if not self.hasher.matches(normalized, record.salt, record.verifier):
            logger.error("Roster record verifier mismatch; treating as not found")
            raise PersonnelNotFoundError("Roster entry failed verification")

        return record

    async def find(self, identifier: str) -> PersonnelProfile:
        """
        Look up a registration candidate.

        Args:
            identifier: Military ID as typed by the candidate

        Returns:
            Profile fields needed to pre-fill registration

        Raises:
            ValidationError: If the identifier is not 5-7 digits
            PersonnelNotFoundError: If no roster entry matches
            AlreadyRegisteredError: If the entry already has an account
            InfrastructureError: If the store fails
        """
        record = await self._load(identifier)
        if record.registered:
            logger.info("Military ID already registered")
            raise AlreadyRegisteredError("Roster entry already consumed")

        logger.info("Military ID found in authorized personnel")
        return record.profile()

    async def mark_registered(self, identifier: str, phone_number: str) -> PersonnelProfile:
        """
        Consume a roster entry for a completed registration.

        The phone number must be the one on the roster entry. The flip is
        conditional in the store, so only one caller can ever succeed.
        """
        record = await self._load(identifier)
        if record.phone_number != phone_number:
            logger.warning(f"Registration phone {mask_phone_number(phone_number)} does not match roster entry")
            raise PersonnelNotFoundError("Phone number does not match roster entry")
        if record.registered:
            raise AlreadyRegisteredError("Roster entry already consumed")

        try:
            flipped = await self.store.mark_registered(record.hash, self.clock())
        except Exception as e:
            logger.error(f"Failed to mark roster entry registered: {e}")
            raise InfrastructureError(f"Personnel store unavailable: {e}")

        if not flipped:
            raise AlreadyRegisteredError("Roster entry consumed concurrently")

        logger.info(f"Roster entry registered for {mask_phone_number(phone_number)}")
        return record.profile()

    def _build_record(self, entry: PersonnelEntry) -> AuthorizedPersonnelRecord:
        normalized = normalize_identifier(entry.military_id)

        is_valid, phone_number, error = validate_phone_number(entry.phone_number)
        if not is_valid:
            raise ValidationError(error or "Invalid phone number format")

        first_name = (entry.first_name or "").strip()
        last_name = (entry.last_name or "").strip()
        rank = (entry.rank or "").strip()
        if not first_name:
            raise ValidationError("First name is required")
        if not last_name:
            raise ValidationError("Last name is required")
        if rank not in MILITARY_RANKS:
            raise ValidationError(f"Unknown rank: {rank or '(empty)'}")

        salt = self.hasher.make_salt()
        return AuthorizedPersonnelRecord(
            hash=self.hasher.hash(normalized),
            salt=salt,
            verifier=self.hasher.verifier(normalized, salt),
            phone_number=phone_number,
            first_name=first_name,
            last_name=last_name,
            rank=rank,
            registered=False,
            created_at=self.clock(),
        )

    async def add_personnel(self, entry: PersonnelEntry) -> Dict[str, Any]:
        """
        Add one roster entry.

        Raises:
            ValidationError: If any field is invalid
            DuplicateIdentifierError: If the military ID is already on the roster
            InfrastructureError: If the store fails
        """
        record = self._build_record(entry)

        try:
            inserted = await self.store.insert(record)
        except Exception as e:
            logger.error(f"Failed to add roster entry: {e}")
            raise InfrastructureError(f"Personnel store unavailable: {e}")

        if not inserted:
            raise DuplicateIdentifierError("Military ID already exists on the roster")

        logger.info(f"Added {record.first_name} {record.last_name} to authorized personnel")
        return self._roster_view(record)

    async def import_roster(self, entries: Sequence[PersonnelEntry]) -> RosterImportResult:
        """
        Add many entries, reporting each row as successful, failed or duplicate.

        Raises:
            InfrastructureError: If the store fails; rows already added stay added
        """
        result = RosterImportResult()

        for index, entry in enumerate(entries):
            row = index + FIRST_DATA_ROW
            try:
                view = await self.add_personnel(entry)
                result.successful.append({"row": row, "personnel": view})
            except DuplicateIdentifierError:
                result.duplicates.append({"row": row})
            except ValidationError as e:
                result.failed.append({"row": row, "error": e.detail or e.kind.value})

        logger.info(
            f"Roster import processed {result.total_processed} rows: "
            f"{len(result.successful)} added, {len(result.duplicates)} duplicates, {len(result.failed)} failed"
        )
        return result

    async def list_roster(self) -> List[Dict[str, Any]]:
        """Every roster entry without its hash, salt or verifier."""
        try:
            records = await self.store.list_all()
        except Exception as e:
            logger.error(f"Failed to list roster: {e}")
            raise InfrastructureError(f"Personnel store unavailable: {e}")
        return [self._roster_view(record) for record in records]

    @staticmethod
    def _roster_view(record: AuthorizedPersonnelRecord) -> Dict[str, Any]:
        return {
            "phoneNumber": record.phone_number,
            "firstName": record.first_name,
            "lastName": record.last_name,
            "rank": record.rank,
            "registered": record.registered,
            "createdAt": record.created_at.isoformat() if record.created_at else None,
        }
