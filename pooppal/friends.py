"""Friend graph: pure partitioning of friendship rows plus request handling.

A friendship row is a directed edge from requester (``user_id``) to recipient
(``friend_id``). The store has no uniqueness constraint on the unordered pair,
so ``validate_friend_request`` must be run against the loaded rows before any
new request is created.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from .database import StoreError
from .logging_config import get_logger, log_friend_event
from .models import AuthenticatedUser, FriendshipRecord, FriendshipStatus, LogEntry, Profile
from .results import ErrorKind, OperationResult

logger = get_logger("friends")


class FriendRequestRejected(ValueError):
    """A friend request failed pre-flight validation."""


# =============================================================================
# Partitioning
# =============================================================================


def accepted_friendships(friendships: Sequence[FriendshipRecord]) -> list[FriendshipRecord]:
    return [f for f in friendships if f.status == FriendshipStatus.accepted]


def incoming_requests(
    friendships: Sequence[FriendshipRecord],
    current_user_id: str,
) -> list[FriendshipRecord]:
    """Pending requests someone else sent to the current user."""
    return [
        f for f in friendships
        if f.status == FriendshipStatus.pending and f.friend_id == current_user_id
    ]


def outgoing_requests(
    friendships: Sequence[FriendshipRecord],
    current_user_id: str,
) -> list[FriendshipRecord]:
    """Pending requests the current user sent."""
    return [
        f for f in friendships
        if f.status == FriendshipStatus.pending and f.user_id == current_user_id
    ]


def other_party_id(friendship: FriendshipRecord, current_user_id: str) -> str:
    if friendship.user_id == current_user_id:
        return friendship.friend_id
    return friendship.user_id


@dataclass(frozen=True)
class FriendshipPartition:
    accepted: list[FriendshipRecord] = field(default_factory=list)
    incoming: list[FriendshipRecord] = field(default_factory=list)
    outgoing: list[FriendshipRecord] = field(default_factory=list)


def partition_friendships(
    friendships: Sequence[FriendshipRecord],
    current_user_id: str,
) -> FriendshipPartition:
    return FriendshipPartition(
        accepted=accepted_friendships(friendships),
        incoming=incoming_requests(friendships, current_user_id),
        outgoing=outgoing_requests(friendships, current_user_id),
    )


def has_relationship(
    friendships: Sequence[FriendshipRecord],
    user_a: str,
    user_b: str,
) -> bool:
    """True if any row links the two users, in either direction and any status."""
    return any(
        (f.user_id == user_a and f.friend_id == user_b)
        or (f.user_id == user_b and f.friend_id == user_a)
        for f in friendships
    )


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def validate_friend_request(
    friendships: Sequence[FriendshipRecord],
    current_user_id: str,
    current_email: Optional[str],
    target_email: str,
    target_id: Optional[str] = None,
) -> str:
    """Check a friend request before anything is written.

    Returns the normalised target email.

    Raises:
        FriendRequestRejected: empty email, own email, or an existing row
            between the two users.
    """
    email = normalize_email(target_email)
    if not email:
        raise FriendRequestRejected("Enter your friend's email address.")
    if email == normalize_email(current_email):
        raise FriendRequestRejected("You cannot add yourself.")
    if target_id is not None:
        if target_id == current_user_id:
            raise FriendRequestRejected("You cannot add yourself.")
        if has_relationship(friendships, current_user_id, target_id):
            raise FriendRequestRejected("You already have a pending or accepted request with this user.")
    return email


# =============================================================================
# Synchronization
# =============================================================================


class FriendStore(Protocol):
    async def list_friendships(self, user_id: str) -> list[FriendshipRecord]: ...

    async def list_profiles(self, ids: list[str]) -> list[Profile]: ...

    async def list_logs_for_users(self, user_ids: list[str]) -> list[LogEntry]: ...

    async def find_profile_by_email(self, email: str) -> Optional[Profile]: ...

    async def create_friendship(self, user_id: str, friend_id: str) -> FriendshipRecord: ...

    async def update_friendship_status(self, friendship_id: str, status: FriendshipStatus = ...) -> None: ...

    async def delete_friendship(self, friendship_id: str) -> None: ...


class FriendsSync:
    """Friendships, friend profiles and friends' logs for the signed-in user.

    Errors here are tracked separately from ``LogSync.error``.
    """

    def __init__(self, store: FriendStore):
        self.store = store
        self.user: Optional[AuthenticatedUser] = None
        self.friendships: list[FriendshipRecord] = []
        self.friend_logs: list[LogEntry] = []
        self.profiles_by_id: dict[str, Profile] = {}
        self.loading = False
        self.action_loading = False
        self.error: Optional[str] = None

    def _require_user(self, user: Optional[AuthenticatedUser]) -> AuthenticatedUser:
        if user is None:
            raise RuntimeError("Friend operation called without a signed-in user")
        return user

    @property
    def partition(self) -> FriendshipPartition:
        if self.user is None:
            return FriendshipPartition()
        return partition_friendships(self.friendships, self.user.id)

    def accepted_friend_ids(self) -> list[str]:
        if self.user is None:
            return []
        return [other_party_id(f, self.user.id) for f in accepted_friendships(self.friendships)]

    def is_friend(self, user_id: str) -> bool:
        return user_id in self.accepted_friend_ids()

    def logs_for_friend(self, friend_id: str) -> list[LogEntry]:
        return [log for log in self.friend_logs if log.user_id == friend_id]

    def find(self, friendship_id: str) -> Optional[FriendshipRecord]:
        return next((f for f in self.friendships if f.id == friendship_id), None)

    async def load(self, user: AuthenticatedUser) -> OperationResult:
        """Reload friendships, the other parties' profiles and accepted friends' logs."""
        user = self._require_user(user)
        self.user = user
        self.loading = True
        self.error = None
        try:
            try:
                friendships = await self.store.list_friendships(user.id)
            except StoreError as e:
                self.error = e.message
                logger.warning(f"LOAD | {user.id} | friendships FAILED ({e.message})")
                return OperationResult.failure(e.message)

            self.friendships = list(friendships)
            other_ids = list(dict.fromkeys(other_party_id(f, user.id) for f in self.friendships))
            if not other_ids:
                self.friend_logs = []
                self.profiles_by_id = {}
                return OperationResult.success()

            try:
                profiles = await self.store.list_profiles(other_ids)
                self.profiles_by_id = {profile.id: profile for profile in profiles}
            except StoreError as e:
                self.error = e.message

            accepted_ids = self.accepted_friend_ids()
            if accepted_ids:
                try:
                    self.friend_logs = await self.store.list_logs_for_users(accepted_ids)
                except StoreError as e:
                    self.error = e.message
                    self.friend_logs = []
            else:
                self.friend_logs = []

            if self.error:
                return OperationResult.failure(self.error)
            return OperationResult.success()
        finally:
            self.loading = False

    async def add_friend(self, user: AuthenticatedUser, email: str) -> OperationResult:
        """Send a pending request to the user registered under ``email``."""
        user = self._require_user(user)
        try:
            email = validate_friend_request(self.friendships, user.id, user.email, email)
        except FriendRequestRejected as e:
            self.error = str(e)
            log_friend_event(user.id, "request", email, False, str(e))
            return OperationResult.failure(str(e), ErrorKind.validation)

        self.action_loading = True
        self.error = None
        try:
            try:
                target = await self.store.find_profile_by_email(email)
            except StoreError as e:
                self.error = e.message
                return OperationResult.failure(e.message)

            if target is None:
                self.error = "No user found with that email."
                log_friend_event(user.id, "request", email, False, self.error)
                return OperationResult.failure(self.error, ErrorKind.not_found)

            try:
                validate_friend_request(self.friendships, user.id, user.email, email, target.id)
            except FriendRequestRejected as e:
                self.error = str(e)
                log_friend_event(user.id, "request", target.id, False, str(e))
                return OperationResult.failure(str(e), ErrorKind.validation)

            try:
                created = await self.store.create_friendship(user.id, target.id)
            except StoreError as e:
                self.error = e.message
                log_friend_event(user.id, "request", target.id, False, e.message)
                return OperationResult.failure(e.message)

            log_friend_event(user.id, "request", target.id, True)
            await self.load(user)
            return OperationResult.success(created)
        finally:
            self.action_loading = False

    async def accept_request(self, user: AuthenticatedUser, request_id: str) -> OperationResult:
        """Accept an incoming pending request."""
        user = self._require_user(user)
        request = self.find(request_id)
        if request is None:
            return OperationResult.failure("Friend request not found", ErrorKind.not_found)
        if request.status != FriendshipStatus.pending or request.friend_id != user.id:
            self.error = "Only pending requests sent to you can be accepted."
            return OperationResult.failure(self.error, ErrorKind.validation)

        return await self._mutate(
            user,
            "accept",
            request,
            lambda: self.store.update_friendship_status(request_id, FriendshipStatus.accepted),
        )

    async def decline_request(self, user: AuthenticatedUser, request_id: str) -> OperationResult:
        """Decline an incoming request or cancel an outgoing one."""
        user = self._require_user(user)
        request = self.find(request_id)
        if request is None:
            return OperationResult.failure("Friend request not found", ErrorKind.not_found)
        if request.status != FriendshipStatus.pending:
            self.error = "Only pending requests can be declined."
            return OperationResult.failure(self.error, ErrorKind.validation)

        return await self._mutate(
            user,
            "decline",
            request,
            lambda: self.store.delete_friendship(request_id),
        )

    async def _mutate(self, user, event, request, call) -> OperationResult:
        self.action_loading = True
        self.error = None
        target = other_party_id(request, user.id)
        try:
            try:
                await call()
            except StoreError as e:
                self.error = e.message
                log_friend_event(user.id, event, target, False, e.message)
                return OperationResult.failure(e.message)

            log_friend_event(user.id, event, target, True)
            await self.load(user)
            return OperationResult.success()
        finally:
            self.action_loading = False

    def clear(self) -> None:
        self.user = None
        self.friendships = []
        self.friend_logs = []
        self.profiles_by_id = {}
        self.loading = False
        self.action_loading = False
        self.error = None
