import asyncio

from form_wizard.config import FormConfiguration
from form_wizard.context import FormRequest, FormState
from form_wizard.errors import ValidationError
from form_wizard.hooks import EventChannel
from form_wizard.session import InMemorySessionStore, SessionBinder, SessionModel


def test_session_model_namespaces_and_copies():
    store = InMemorySessionStore()
    a = SessionModel(store, "sid", "one")
    b = SessionModel(store, "sid", "two")
    a.set("steps", ["/x"])
    a.set({"name": "Clark"})

    steps = a.get("steps")
    steps.append("/y")
    assert a.get("steps") == ["/x"]
    assert b.get("steps") is None

    a.unset("name")
    assert a.to_dict() == {"steps": ["/x"]}
    a.reset()
    assert a.to_dict() == {}


def test_expired_sessions_are_dropped(monkeypatch):
    store = InMemorySessionStore(ttl_sec=60)
    store.save("sid", {"ns": {"a": 1}})
    real_time = __import__("time").time
    monkeypatch.setattr("form_wizard.session.time.time", lambda: real_time() + 120)
    assert store.load("sid") == {}


def test_binder_only_loads_errors_owned_by_the_step():
    session = SessionModel(InMemorySessionStore(), "sid", "ns")
    session.set(
        "errors",
        {
            "name": ValidationError("name", "required"),
            "date": ValidationError("date", "required", group="date"),
            "other": ValidationError("other", "required"),
            "age": ValidationError("age", "equal", redirect="/exit"),
        },
    )
    options = FormConfiguration(fields={"name": {}, "day": {"group": "date"}, "age": {}})
    req = FormRequest(session=session, form=FormState(options=options))
    assert sorted(SessionBinder().get_errors(req)) == ["date", "name"]


def test_event_channel_on_off():
    channel = EventChannel()
    seen = []

    def listener(*args):
        seen.append(args)

    async def async_listener(*args):
        seen.append(("async",) + args)

    channel.on("complete", listener)
    channel.on("complete", async_listener)
    asyncio.run(channel.emit("complete", 1))
    channel.off("complete", listener)
    asyncio.run(channel.emit("complete", 2))
    assert seen == [(1,), ("async", 1), ("async", 2)]
