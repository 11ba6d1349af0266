from form_wizard.context import FormResponse
from form_wizard.controller import FormController
from form_wizard.errors import ValidationError


def _superman_fork(predicate=True):
    if predicate:
        condition = lambda req: req.form.values.get("example-radio") == "superman"  # noqa: E731
    else:
        condition = {"field": "example-radio", "value": "superman"}
    return [{"target": "/target-page", "condition": condition}]


def test_next_step_uses_next_and_base_url(configured):
    controller = FormController({"template": "foo", "next": "/next-page"})
    req = configured(controller, path="/step", base_url="/base")
    assert controller.get_next_step(req) == "/base/next-page"


def test_next_step_defaults_to_current_path(configured):
    controller = FormController({"template": "foo"})
    req = configured(controller, path="/step")
    assert controller.get_next_step(req) == "/step"


def test_fork_target_when_condition_met(configured):
    for predicate in (True, False):
        controller = FormController({"template": "foo", "next": "/next-page", "forks": _superman_fork(predicate)})
        req = configured(controller, path="/step")
        req.form.values["example-radio"] = "superman"
        assert controller.get_next_step(req) == "/target-page"

        req.form.values["example-radio"] = "batman"
        assert controller.get_next_step(req) == "/next-page"


def test_edit_with_continue_on_edit_appends_edit(configured, session):
    session.set("steps", ["/step"])
    controller = FormController({"template": "foo", "next": "/step", "continueOnEdit": True})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    assert controller.get_next_step(req) == "/step/edit"


def test_edit_without_continue_on_edit_goes_to_confirm_when_visited(configured, session):
    session.set("steps", ["/next-page"])
    controller = FormController({"template": "foo", "next": "/next-page"})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    assert controller.get_next_step(req) == "/confirm"


def test_edit_never_appends_edit_to_confirm(configured, session):
    controller = FormController({"template": "foo", "next": "/confirm", "continueOnEdit": True})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    assert controller.get_next_step(req) == "/confirm"


def test_edit_down_visited_fork_goes_to_confirm(configured, session):
    session.set("steps", ["/target-page"])
    controller = FormController({"template": "foo", "next": "/next-page", "forks": _superman_fork()})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    req.form.values["example-radio"] = "superman"
    assert controller.get_next_step(req) == "/confirm"

    req.base_url = "/a-base-url"
    assert controller.get_next_step(req) == "/a-base-url/confirm"


def test_edit_down_visited_fork_with_continue_on_edit(configured, session):
    session.set("steps", ["/target-page"])
    controller = FormController(
        {"template": "foo", "next": "/next-page", "forks": _superman_fork(), "continueOnEdit": True}
    )
    req = configured(controller, path="/current/edit", base_url="/a-base-url", params={"action": "edit"}, session=session)
    req.form.values["example-radio"] = "superman"
    assert controller.get_next_step(req) == "/a-base-url/target-page/edit"


def test_edit_down_unvisited_fork_returns_raw_target(configured, session):
    session.set("steps", ["/next-page"])
    controller = FormController({"template": "foo", "next": "/next-page", "forks": _superman_fork()})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    req.form.values["example-radio"] = "superman"
    assert controller.get_next_step(req) == "/target-page"


def test_edit_standard_path_visited_or_not(configured, session):
    controller = FormController({"template": "foo", "next": "/next-page", "forks": _superman_fork()})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    req.form.values["example-radio"] = "clark-kent"
    assert controller.get_next_step(req) == "/next-page"

    session.set("steps", ["/next-page"])
    assert controller.get_next_step(req) == "/confirm"


def test_custom_confirm_step(configured, session):
    session.set("steps", ["/next-page"])
    controller = FormController({"template": "foo", "next": "/next-page", "confirmStep": "/check-answers"})
    req = configured(controller, path="/current/edit", params={"action": "edit"}, session=session)
    assert controller.get_next_step(req) == "/check-answers"


def test_error_step_uses_shared_redirect(configured):
    controller = FormController({"template": "foo"})
    req = configured(controller, path="/step", base_url="/base")
    errors = {
        "a": ValidationError("a", "required", redirect="/exit"),
        "b": ValidationError("b", "required", redirect="/exit"),
    }
    assert controller.get_error_step(errors, req) == "/base/exit"


def test_error_step_falls_back_to_current_path(configured):
    controller = FormController({"template": "foo"})
    req = configured(controller, path="/step", base_url="/base")
    errors = {
        "a": ValidationError("a", "required", redirect="/exit"),
        "b": ValidationError("b", "required"),
    }
    assert controller.get_error_step(errors, req) == "/base/step"


def test_error_step_absolute_redirect_is_not_prefixed(configured):
    controller = FormController({"template": "foo"})
    req = configured(controller, path="/step", base_url="/base")
    errors = {"a": ValidationError("a", "age", redirect="https://gov.example/exit")}
    assert controller.get_error_step(errors, req) == "https://gov.example/exit"


def test_error_step_in_edit_mode_appends_edit_once(configured):
    controller = FormController({"template": "foo"})
    req = configured(controller, path="/step", params={"action": "edit"})
    assert controller.get_error_step({"a": ValidationError("a", "required")}, req) == "/step/edit"

    req.path = "/step/edit"
    assert controller.get_error_step({"a": ValidationError("a", "required")}, req) == "/step/edit"

    redirect = {"a": ValidationError("a", "required", redirect="/a-path/edit/id")}
    assert controller.get_error_step(redirect, req) == "/a-path/edit/id"


def test_back_link_from_locals_and_options(configured):
    controller = FormController({"template": "foo", "backLink": "previous"})
    req = configured(controller, path="/step", base_url="/base")
    res = FormResponse()
    assert controller.get_back_link(req, res) == "previous"

    res.locals["backLink"] = None
    assert controller.get_back_link(req, res) is None

    res.locals["backLink"] = ""
    assert controller.get_back_link(req, res) == ""

    res.locals["backLink"] = "backLink"
    req.params["action"] = "edit"
    req.base_url = "/"
    assert controller.get_back_link(req, res) == "/backLink/edit"


def test_locals_include_fields_route_and_static_locals(configured):
    controller = FormController(
        {
            "template": "foo",
            "route": "/bar",
            "next": "/baz",
            "fields": {"a-field": {"mixin": "input-text"}, "another-field": {"mixin": "input-number"}},
            "locals": {"test": "bar"},
        }
    )
    req = configured(controller, path="/bar", base_url="/base")
    req.form.errors = {"a-field": ValidationError("a-field", "required")}
    lcls = controller.locals(req, FormResponse())

    assert [f["key"] for f in lcls["fields"]] == ["a-field", "another-field"]
    assert lcls["fields"][0]["mixin"] == "input-text"
    assert lcls["route"] == "bar"
    assert lcls["test"] == "bar"
    assert lcls["errorLength"] == {"single": True}
    assert lcls["nextPage"] == "/base/baz"
    assert lcls["baseUrl"] == "/base"
