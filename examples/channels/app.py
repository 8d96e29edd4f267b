"""Channels — a REST API for channels and their owning users.

Shows the whole perch pipeline on two resources served by the default
``/:controller/:id`` and ``/:controller`` routes: controllers resolved
from the registry, stores resolved from the container, pagination with a
``pager`` block, and store validation surfacing as 400 with field errors.

Run:
    cd examples/channels && perch run app:app
"""

import datetime
import threading
from dataclasses import dataclass, field, replace
from typing import Generic, TypeVar

from perch import App, AppConfig, Controller, Envelope, NotFound, Pager
from perch.errors import BadRequest, ValidationError
from perch.params import ParameterBag

app = App(AppConfig(debug=True))
app.map_default_routes()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class User:
    id: int | None
    username: str
    email: str = ""
    status: str = "enabled"

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        if not self.username:
            errors["username"] = ["required"]
        elif len(self.username) > 32:
            errors["username"] = ["must be at most 32 characters"]
        if self.email and "@" not in self.email:
            errors["email"] = ["must be a valid email address"]
        if self.status not in ("enabled", "disabled"):
            errors["status"] = ["must be one of enabled, disabled"]
        if errors:
            raise ValidationError("User failed validation", errors)


@dataclass(frozen=True, slots=True)
class Channel:
    id: int | None
    user: User
    name: str
    description: str = ""
    status: str = "enabled"
    published: str = "published"
    created: str = field(default_factory=lambda: datetime.datetime.now(datetime.UTC).isoformat())

    @property
    def slug(self) -> str:
        return "-".join(self.name.lower().split())

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        if not self.name:
            errors["name"] = ["required"]
        elif len(self.name) > 100:
            errors["name"] = ["must be at most 100 characters"]
        if self.status not in ("enabled", "disabled"):
            errors["status"] = ["must be one of enabled, disabled"]
        if self.published not in ("published", "unpublished"):
            errors["published"] = ["must be one of published, unpublished"]
        if errors:
            raise ValidationError("Channel failed validation", errors)


# ---------------------------------------------------------------------------
# In-memory stores (thread-safe)
# ---------------------------------------------------------------------------


EntityT = TypeVar("EntityT")


class MemoryStore(Generic[EntityT]):
    """Dict-backed store; ``ORDERABLE`` lists the sortable fields."""

    ORDERABLE: tuple[str, ...] = ("id",)

    def __init__(self) -> None:
        self._rows: dict[int, EntityT] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def find_by_id(self, entity_id: int) -> EntityT | None:
        with self._lock:
            return self._rows.get(entity_id)

    def _active(self) -> list[EntityT]:
        return [row for row in self._rows.values() if row.status == "enabled"]

    def find_all_active(
        self,
        offset: int = 0,
        limit: int = 30,
        order_by: str = "id",
        direction: str = "ASC",
    ) -> list[EntityT]:
        if order_by not in self.ORDERABLE:
            msg = f"Cannot order by {order_by!r}; expected one of {', '.join(self.ORDERABLE)}."
            raise ValueError(msg)
        if direction not in ("ASC", "DESC"):
            msg = f"Invalid direction {direction!r}."
            raise ValueError(msg)
        with self._lock:
            rows = sorted(self._active(), key=lambda r: getattr(r, order_by), reverse=direction == "DESC")
        return rows[offset : offset + limit]

    def count_all_active(self) -> int:
        with self._lock:
            return len(self._active())

    def insert(self, entity: EntityT) -> int:
        entity.validate()
        with self._lock:
            entity_id = self._next_id
            self._next_id += 1
            self._rows[entity_id] = replace(entity, id=entity_id)
        return entity_id

    def update(self, entity: EntityT) -> None:
        entity.validate()
        with self._lock:
            if entity.id not in self._rows:
                msg = f"No row with id {entity.id}."
                raise LookupError(msg)
            self._rows[entity.id] = entity

    def delete(self, entity_id: int) -> None:
        with self._lock:
            self._rows.pop(entity_id, None)


class UserStore(MemoryStore[User]):
    ORDERABLE = ("id", "username")


class ChannelStore(MemoryStore[Channel]):
    ORDERABLE = ("id", "name")


app.container.set("users.store", UserStore())
app.container.set("channels.store", ChannelStore())


# ---------------------------------------------------------------------------
# Controllers
# ---------------------------------------------------------------------------


def _owner(user: User) -> dict:
    return {"id": user.id, "username": user.username}


def _list(controller: Controller, store: MemoryStore, params: ParameterBag, render) -> Envelope:
    pager = Pager.from_params(params, controller.config)
    try:
        rows = store.find_all_active(pager.offset, pager.limit, pager.order_by, pager.direction)
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc
    return Envelope([render(row) for row in rows]).with_custom("pager", pager.to_dict(store.count_all_active()))


@app.controller
class ChannelsController(Controller):
    @property
    def store(self) -> ChannelStore:
        return self.service("channels.store")

    def get(self, params: ParameterBag):
        channel_id = params.get_int("id")
        if not channel_id:
            return _list(
                self,
                self.store,
                params,
                lambda ch: {"id": ch.id, "name": ch.name, "slug": ch.slug, "user": _owner(ch.user)},
            )

        channel = self.store.find_by_id(channel_id)
        if channel is None:
            raise NotFound("Channel does not exist.")
        if channel.status == "disabled":
            raise NotFound("Channel is no longer available.")
        return {
            "id": channel.id,
            "name": channel.name,
            "slug": channel.slug,
            "description": channel.description,
            "created": channel.created,
            "user": _owner(channel.user),
        }

    def create(self, params: ParameterBag):
        user = self.service("users.store").find_by_id(params.get_int("user_id"))
        if user is None:
            raise NotFound("User does not exist.")

        channel = Channel(
            id=None,
            user=user,
            name=params.get_str("name", ""),
            description=params.get_str("description", ""),
            status=params.get_str("status", "enabled"),
            published=params.get_str("published", "published"),
        )
        try:
            channel_id = self.store.insert(channel)
        except ValidationError as exc:
            raise BadRequest(exc.message, exc.errors) from exc
        return {"id": channel_id}

    def update(self, params: ParameterBag):
        channel = self.store.find_by_id(params.get_int("id"))
        if channel is None:
            raise NotFound("Channel does not exist.")

        changed = replace(
            channel,
            name=params.get_str("name", channel.name),
            description=params.get_str("description", channel.description),
            status=params.get_str("status", channel.status),
            published=params.get_str("published", channel.published),
        )
        try:
            self.store.update(changed)
        except ValidationError as exc:
            raise BadRequest(exc.message, exc.errors) from exc

    def delete(self, params: ParameterBag):
        channel = self.store.find_by_id(params.get_int("id"))
        if channel is None:
            raise NotFound("Channel does not exist.")
        self.store.delete(channel.id)


@app.controller
class UsersController(Controller):
    @property
    def store(self) -> UserStore:
        return self.service("users.store")

    def get(self, params: ParameterBag):
        user_id = params.get_int("id")
        if not user_id:
            return _list(self, self.store, params, lambda u: {"id": u.id, "username": u.username})

        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound("User does not exist.")
        if user.status == "disabled":
            raise NotFound("User is no longer available.")
        return {"id": user.id, "username": user.username, "email": user.email}

    def create(self, params: ParameterBag):
        user = User(
            id=None,
            username=params.get_str("username", ""),
            email=params.get_str("email", ""),
            status=params.get_str("status", "enabled"),
        )
        try:
            user_id = self.store.insert(user)
        except ValidationError as exc:
            raise BadRequest(exc.message, exc.errors) from exc
        return {"id": user_id}

    def update(self, params: ParameterBag):
        user = self.store.find_by_id(params.get_int("id"))
        if user is None:
            raise NotFound("User does not exist.")
        changed = replace(
            user,
            username=params.get_str("username", user.username),
            email=params.get_str("email", user.email),
            status=params.get_str("status", user.status),
        )
        try:
            self.store.update(changed)
        except ValidationError as exc:
            raise BadRequest(exc.message, exc.errors) from exc

    def delete(self, params: ParameterBag):
        user = self.store.find_by_id(params.get_int("id"))
        if user is None:
            raise NotFound("User does not exist.")
        self.store.delete(user.id)


if __name__ == "__main__":
    app.run()
