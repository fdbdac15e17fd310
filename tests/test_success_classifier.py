import json

import pytest

from conftest import FakeClock, RecordingDispatcher
from codetempo.models.success import SuccessEvent, SuccessPattern
from codetempo.services.celebrations import CELEBRATION_PROFILES
from codetempo.services.success_classifier import SuccessClassifier, exit_code_rule, extract_text


def terminal(message: str) -> SuccessEvent:
    return SuccessEvent(kind="terminal_output", details={"message": message})


def task(name: str, command: str, exit_code: int) -> SuccessEvent:
    return SuccessEvent(
        kind="task_success",
        details={"taskName": name, "command": command, "exitCode": exit_code},
    )


def make_classifier(clock=None, dispatcher=None, **kwargs) -> SuccessClassifier:
    return SuccessClassifier(clock=clock or FakeClock(), dispatcher=dispatcher, **kwargs)


class TestExtractText:
    def test_terminal_output_uses_message(self):
        assert extract_text(terminal("All tests passed")) == "All tests passed"

    def test_task_success_joins_name_and_command(self):
        assert extract_text(task("Build", "npm run build", 0)) == "Build npm run build completed"

    def test_diagnostic_improvement(self):
        event = SuccessEvent(
            kind="diagnostic_improvement", details={"previousErrors": 5, "currentErrors": 1}
        )
        assert extract_text(event) == "errors reduced from 5 to 1"

    def test_file_system(self):
        event = SuccessEvent(kind="file_system", details={"filePath": "dist/app.js"})
        assert extract_text(event) == "new file created: dist/app.js"

    def test_manual_defaults(self):
        assert extract_text(SuccessEvent(kind="manual")) == "manual celebration"


class TestAnalyze:
    def test_webpack_output(self):
        pattern = make_classifier().analyze(terminal("webpack 5.88.2 compiled successfully in 1234 ms"))
        assert pattern.celebration_type == "compilation_success"
        assert pattern.description == "Webpack compilation successful"
        assert pattern.confidence == 0.95

    def test_jest_output(self):
        pattern = make_classifier().analyze(terminal("Jest: 42 tests passed, 0 failed"))
        assert pattern.celebration_type == "test_pass"
        assert pattern.description == "Jest tests passed"

    def test_highest_confidence_wins(self):
        """Several patterns match; the most confident one is chosen."""
        pattern = make_classifier().analyze(terminal("Error resolved, fixed the bug"))
        assert pattern.celebration_type == "bug_fix"
        assert pattern.description == "Error resolved"

    def test_unrelated_output(self):
        assert make_classifier().analyze(terminal("Listening on port 3000")) is None

    def test_empty_message(self):
        assert make_classifier().analyze(terminal("")) is None

    def test_exit_code_deploy(self):
        pattern = make_classifier().analyze(task("Push image", "docker push registry/app:v1", 0))
        assert pattern.celebration_type == "deployment"
        assert pattern.confidence == 0.8
        assert pattern.matcher == "exit_code_0_deployment"

    def test_exit_code_build_checked_first(self):
        pattern = make_classifier().analyze(task("Build", "npm run build", 0))
        assert pattern.celebration_type == "compilation_success"
        assert pattern.description == "Build task completed successfully (exit code 0)"

    def test_exit_code_matches_across_name_and_command(self):
        pattern = make_classifier().analyze(task("CI", "pytest -q", 0))
        assert pattern.celebration_type == "test_pass"

    @pytest.mark.parametrize(
        "command",
        ["docker push myapp:latest", "docker push registry.gitlab.com/team/app"],
    )
    def test_keywords_match_whole_tokens(self, command):
        """Image tags and hosts that contain test keywords do not make a push a test run."""
        pattern = make_classifier().analyze(task("Push image", command, 0))
        assert pattern.celebration_type == "deployment"

    def test_phrases_before_single_keywords(self):
        pattern = make_classifier().analyze(task("Build", "npm publish", 0))
        assert pattern.celebration_type == "deployment"

    def test_exit_code_jest(self):
        pattern = make_classifier().analyze(task("Unit", "npx jest --ci", 0))
        assert pattern.celebration_type == "test_pass"

    def test_plural_keyword(self):
        assert exit_code_rule("npm run tests")[1] == "test_pass"
        assert exit_code_rule("npm run label") is None

    def test_failed_task_is_ignored(self):
        assert make_classifier().analyze(task("Build", "npm run build", 1)) is None

    def test_string_matcher_is_case_insensitive(self):
        patterns = [
            SuccessPattern(
                matcher="Ship It",
                celebration_type="deployment",
                confidence=0.9,
                description="Shipped",
            )
        ]
        classifier = SuccessClassifier(patterns, clock=FakeClock())
        assert classifier.analyze(terminal("ok, ship it!")).description == "Shipped"

    def test_acceptance_ratio_above_one_rejects_everything(self):
        classifier = make_classifier(acceptance_ratio=1.5)
        assert classifier.analyze(terminal("All tests passed")) is None

    def test_analyze_has_no_side_effects(self):
        """Analyzing does not start a cooldown or dispatch anything."""
        dispatcher = RecordingDispatcher()
        classifier = make_classifier(dispatcher=dispatcher)
        classifier.analyze(terminal("All tests passed"))
        assert not classifier.in_cooldown()
        assert dispatcher.calls == []


class TestClassify:
    @pytest.mark.asyncio
    async def test_dispatches_celebration(self, dispatcher):
        classifier = make_classifier(dispatcher=dispatcher)
        event = terminal("All tests passed")

        celebration = await classifier.classify(event)

        assert celebration.celebration_type == "test_pass"
        assert celebration.source == "pattern"
        assert dispatcher.triggers == ["success_celebration"]
        request, _ = dispatcher.calls[0]
        profile = CELEBRATION_PROFILES["test_pass"]
        assert request.prompt == f"{profile.prompt}. Context: {json.dumps(event.details)}"
        assert request.bpm == profile.bpm

    @pytest.mark.asyncio
    async def test_exit_code_source(self, dispatcher):
        classifier = make_classifier(dispatcher=dispatcher)
        celebration = await classifier.classify(task("Build", "npm run build", 0))
        assert celebration.source == "exit_code"
        assert celebration.celebration_type == "compilation_success"

    @pytest.mark.asyncio
    async def test_cooldown(self, clock, dispatcher):
        """A second success within five seconds is dropped."""
        classifier = make_classifier(clock=clock, dispatcher=dispatcher)

        assert await classifier.classify(terminal("All tests passed")) is not None
        clock.advance(4.9)
        assert await classifier.classify(terminal("All tests passed")) is None
        clock.advance(0.2)
        assert await classifier.classify(terminal("All tests passed")) is not None
        assert len(dispatcher.calls) == 2

    @pytest.mark.asyncio
    async def test_manual_trigger_bypasses_cooldown(self, clock, dispatcher):
        classifier = make_classifier(clock=clock, dispatcher=dispatcher)
        await classifier.classify(terminal("All tests passed"))

        celebration = await classifier.trigger("deployment", "Shipped v1")

        assert celebration.source == "manual"
        assert celebration.confidence == 1.0
        assert dispatcher.calls[-1][0].context == "deployment_celebration"
        assert classifier.in_cooldown()

    @pytest.mark.asyncio
    async def test_disabled_switches(self, dispatcher):
        for kwargs in ({"enabled": False}, {"celebration_drops": False}):
            classifier = make_classifier(dispatcher=dispatcher, **kwargs)
            assert not classifier.active
            assert await classifier.classify(terminal("All tests passed")) is None
            assert await classifier.trigger("bug_fix", "Fixed it") is None
        assert dispatcher.calls == []

    @pytest.mark.asyncio
    async def test_no_dispatcher(self):
        """Without a dispatcher the decision is still returned."""
        celebration = await make_classifier().classify(terminal("deployment successful"))
        assert celebration.celebration_type == "deployment"
        assert celebration.request.duration == 60
