"""
Tests for the action engine, group executor and doctor use case.
"""

from pathlib import Path

import pytest

from devdoctor.adapters import CommandRequest, MockRunner, ShellCommandRunner
from devdoctor.core.config.loader import FoundConfig
from devdoctor.core.engine.action import ActionEngine
from devdoctor.core.engine.group import GroupExecutor
from devdoctor.core.engine.known_errors import KnownErrorEngine
from devdoctor.core.errors import ProcessSpawnError
from devdoctor.core.interaction import DenyAll
from devdoctor.core.models import (
    ActionStatus,
    CommandReport,
    GroupResult,
    GroupStatus,
    KnownError,
    SkipReason,
)
from devdoctor.core.persistence.file_cache import FileCache, NoOpCache
from devdoctor.core.use_cases.doctor import DoctorRunOptions, list_groups, run_doctor


def _engine(context, runner, cache=None, interaction=None, run_fix=True, known_errors=None) -> ActionEngine:
    return ActionEngine(
        context,
        runner,
        cache or NoOpCache(),
        interaction or DenyAll(),
        run_fix=run_fix,
        known_errors=known_errors,
    )


def _check_fix(check: list[str] | None = None, fix: list[str] | None = None, **extra) -> dict:
    action: dict = {"name": "a", "check": {"commands": check or []}}
    if fix is not None:
        action["fix"] = {"commands": fix}
    action.update(extra)
    return action


# ── Action Engine: check phase ───────────────────────────────────────


class TestActionCheck:
    def test_passing_check(self, context, mock_runner, make_group):
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.PASSED
        assert mock_runner.commands == ["check"]

    def test_exit_99_is_recoverable(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 99, 0)
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIXED
        assert mock_runner.calls_to("fix") == 1

    def test_exit_100_is_fatal(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 100)
        group = make_group("g", [_check_fix(["check", "second"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FATAL
        assert outcome.fatal
        assert mock_runner.commands == ["check"]

    def test_all_check_commands_run(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("first", 1)
        group = make_group("g", [_check_fix(["first", "second"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FAILED_NO_FIX
        assert mock_runner.commands == ["first", "second"]

    def test_failing_without_fix_surfaces_help(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1)
        group = make_group("g", [{
            "name": "a",
            "check": {"commands": ["check"]},
            "fix": {"help_text": "Install it", "help_url": "https://example.com"},
        }])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FAILED_NO_FIX
        assert outcome.help_text == "Install it"
        assert outcome.help_url == "https://example.com"

    def test_relative_command_resolved_against_group_dir(self, context, mock_runner, make_group, tmp_path: Path):
        group = make_group("g", [_check_fix(["./bin/check --fast"])])
        _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert mock_runner.commands == [f"{tmp_path}/bin/check --fast"]

    def test_working_dir_template(self, context, mock_runner, make_group, tmp_path: Path):
        group = make_group("g", [_check_fix(["ls {{ working_dir }}"])])
        _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert mock_runner.commands == [f"ls {tmp_path}"]

    def test_request_carries_search_path(self, context, mock_runner, make_group, tmp_path: Path):
        group = make_group("g", [_check_fix(["check"])], bin_path=tmp_path / "bin")
        _engine(context, mock_runner).evaluate(group, group.actions[0])
        request = mock_runner.call_log[0]
        assert request.working_dir == tmp_path
        assert request.search_path.startswith(f"{tmp_path}:{tmp_path / 'bin'}")
        assert request.label == "g/a"


# ── Action Engine: fix and verify ────────────────────────────────────


class TestActionFix:
    def test_fixed_after_verification(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1, 0)
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIXED
        assert mock_runner.commands == ["check", "fix", "check"]
        assert len(outcome.report.verify) == 1

    def test_fix_disabled(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1)
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner, run_fix=False).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIX_SKIPPED
        assert mock_runner.calls_to("fix") == 0

    def test_prompt_denied(self, context, mock_runner, make_group, deny):
        mock_runner.set_exit_code("check", 1)
        group = make_group("g", [{
            "name": "a",
            "check": {"commands": ["check"]},
            "fix": {"commands": ["fix"], "prompt": {"text": "Really?", "extra_context": "It deletes things"}},
        }])
        outcome = _engine(context, mock_runner, interaction=deny).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIX_DENIED
        assert outcome.failed
        assert deny.prompts == ["Really?"]
        assert mock_runner.calls_to("fix") == 0

    def test_prompt_approved(self, context, mock_runner, make_group, approve):
        mock_runner.set_exit_code("check", 1, 0)
        group = make_group("g", [{
            "name": "a",
            "check": {"commands": ["check"]},
            "fix": {"commands": ["fix"], "prompt": {"text": "Really?"}},
        }])
        outcome = _engine(context, mock_runner, interaction=approve).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIXED
        assert approve.prompts == ["Really?"]

    def test_fix_ineffective(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1)
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIX_INEFFECTIVE

    def test_fix_failed(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1)
        mock_runner.set_exit_code("fix", 2)
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIX_FAILED

    def test_recoverable_fix_failure_continues(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1, 0)
        mock_runner.set_exit_code("fix-1", 5)
        group = make_group("g", [_check_fix(["check"], ["fix-1", "fix-2"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert mock_runner.commands == ["check", "fix-1", "fix-2", "check"]
        assert outcome.status == ActionStatus.FIXED

    def test_fatal_fix_stops(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1)
        mock_runner.set_exit_code("fix-1", 100)
        group = make_group("g", [_check_fix(["check"], ["fix-1", "fix-2"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FATAL
        assert mock_runner.commands == ["check", "fix-1"]

    def test_fatal_verification(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1, 100)
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FATAL

    def test_empty_check_always_fixes(self, context, mock_runner, make_group):
        group = make_group("g", [_check_fix([], ["fix"])])
        engine = _engine(context, mock_runner)
        assert engine.evaluate(group, group.actions[0]).status == ActionStatus.FIXED
        assert engine.evaluate(group, group.actions[0]).status == ActionStatus.FIXED
        assert mock_runner.calls_to("fix") == 2

    def test_empty_check_failed_fix(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("fix", 1)
        group = make_group("g", [_check_fix([], ["fix"])])
        outcome = _engine(context, mock_runner).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIX_FAILED

    def test_real_shell_fix(self, context, make_group, tmp_path: Path):
        group = make_group("g", [_check_fix(["test -f marker"], ["touch marker"])])
        outcome = _engine(context, ShellCommandRunner()).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIXED
        assert (tmp_path / "marker").is_file()


# ── Action Engine: caching ───────────────────────────────────────────


class TestActionCache:
    def _group(self, make_group, check_commands=None):
        return make_group("g", [{
            "name": "a",
            "check": {"paths": ["*.lock"], "commands": check_commands or []},
            "fix": {"commands": ["fix"]},
        }])

    def test_paths_only_runs_fix_then_caches(self, context, mock_runner, make_group, tmp_path, tmp_cache_path):
        (tmp_path / "deps.lock").write_text("v1")
        group = self._group(make_group)
        engine = _engine(context, mock_runner, cache=FileCache(tmp_cache_path))

        first = engine.evaluate(group, group.actions[0])
        assert first.status == ActionStatus.FIXED
        assert mock_runner.calls_to("fix") == 1

        second = engine.evaluate(group, group.actions[0])
        assert second.status == ActionStatus.PASSED_CACHED
        assert mock_runner.calls_to("fix") == 1

    def test_file_change_invalidates(self, context, mock_runner, make_group, tmp_path, tmp_cache_path):
        lock = tmp_path / "deps.lock"
        lock.write_text("v1")
        group = self._group(make_group)
        engine = _engine(context, mock_runner, cache=FileCache(tmp_cache_path))
        engine.evaluate(group, group.actions[0])

        lock.write_text("v2")
        outcome = engine.evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIXED
        assert mock_runner.calls_to("fix") == 2

    def test_idempotent_second_run_spawns_nothing(self, context, mock_runner, make_group, tmp_path, tmp_cache_path):
        (tmp_path / "deps.lock").write_text("v1")
        group = self._group(make_group, ["check"])
        engine = _engine(context, mock_runner, cache=FileCache(tmp_cache_path))

        assert engine.evaluate(group, group.actions[0]).status == ActionStatus.PASSED
        calls = mock_runner.call_count
        assert engine.evaluate(group, group.actions[0]).status == ActionStatus.PASSED_CACHED
        assert mock_runner.call_count == calls

    def test_cache_survives_persist(self, context, mock_runner, make_group, tmp_path, tmp_cache_path):
        (tmp_path / "deps.lock").write_text("v1")
        group = self._group(make_group, ["check"])
        cache = FileCache(tmp_cache_path)
        _engine(context, mock_runner, cache=cache).evaluate(group, group.actions[0])
        cache.persist()

        mock_runner.reset()
        outcome = _engine(context, mock_runner, cache=FileCache(tmp_cache_path)).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.PASSED_CACHED
        assert mock_runner.call_count == 0

    def test_no_cache_always_runs(self, context, mock_runner, make_group, tmp_path):
        (tmp_path / "deps.lock").write_text("v1")
        group = self._group(make_group, ["check"])
        engine = _engine(context, mock_runner, cache=NoOpCache())
        engine.evaluate(group, group.actions[0])
        engine.evaluate(group, group.actions[0])
        assert mock_runner.calls_to("check") == 2

    def test_failure_not_cached(self, context, mock_runner, make_group, tmp_path, tmp_cache_path):
        (tmp_path / "deps.lock").write_text("v1")
        mock_runner.set_exit_code("check", 1)
        group = make_group("g", [{"name": "a", "check": {"paths": ["*.lock"], "commands": ["check"]}}])
        cache = FileCache(tmp_cache_path)
        outcome = _engine(context, mock_runner, cache=cache).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FAILED_NO_FIX
        assert cache.get("g", "a") is None


# ── Action Engine: self-healing ──────────────────────────────────────


class TestSelfHealing:
    def test_known_error_fix_then_retry(self, context, mock_runner, make_group, tmp_path, approve):
        mock_runner.set_exit_code("check", 1, 1, 0)
        mock_runner.set_response(
            "fix",
            CommandReport(command="fix", exit_code=1, error="ENOSPC: disk full"),
            CommandReport(command="fix", exit_code=0),
        )
        known = KnownErrorEngine(
            [KnownError(name="disk-full", pattern="disk full", fix={"commands": ["cleanup"]}, directory=tmp_path)],
            context,
            mock_runner,
            approve,
        )
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner, interaction=approve, known_errors=known).evaluate(
            group, group.actions[0]
        )
        assert outcome.status == ActionStatus.FIXED
        assert mock_runner.calls_to("cleanup") == 1
        assert mock_runner.calls_to("fix") == 2

    def test_no_match_keeps_failure(self, context, mock_runner, make_group, tmp_path, approve):
        mock_runner.set_exit_code("check", 1)
        mock_runner.set_exit_code("fix", 1, output="something else")
        known = KnownErrorEngine(
            [KnownError(name="disk-full", pattern="disk full", fix={"commands": ["cleanup"]}, directory=tmp_path)],
            context,
            mock_runner,
            approve,
        )
        group = make_group("g", [_check_fix(["check"], ["fix"])])
        outcome = _engine(context, mock_runner, known_errors=known).evaluate(group, group.actions[0])
        assert outcome.status == ActionStatus.FIX_FAILED
        assert mock_runner.calls_to("cleanup") == 0


# ── Group Executor ───────────────────────────────────────────────────


class _ExplodingRunner(MockRunner):
    def run(self, request: CommandRequest) -> CommandReport:
        raise ProcessSpawnError(request.command, "no such shell")


class _ExplodingDetailsRunner(MockRunner):
    """Runs checks normally but can't spawn report-extra-details commands."""

    def run(self, request: CommandRequest) -> CommandReport:
        if request.label and "/details/" in request.label:
            raise ProcessSpawnError(request.command, "no such shell")
        return super().run(request)


class TestGroupExecutor:
    def _executor(self, context, runner, progress=None) -> GroupExecutor:
        return GroupExecutor(_engine(context, runner), runner, context, progress)

    def test_all_pass(self, context, mock_runner, make_group):
        group = make_group("g", [_check_fix(["c1"]), {"name": "b", "check": {"commands": ["c2"]}}])
        result = self._executor(context, mock_runner).run(group, {})
        assert result.status == GroupStatus.SUCCEEDED
        assert [a.action for a in result.actions] == ["a", "b"]

    def test_literal_skip(self, context, mock_runner, make_group):
        group = make_group("g", [_check_fix(["check"])], skip=True)
        result = self._executor(context, mock_runner).run(group, {})
        assert result.status == GroupStatus.SKIPPED
        assert result.skip_reason == SkipReason.SKIP_CONDITION
        assert mock_runner.call_count == 0

    def test_skip_command_zero_skips(self, context, mock_runner, make_group):
        group = make_group("g", [_check_fix(["check"])], skip={"command": "is-ci"})
        result = self._executor(context, mock_runner).run(group, {})
        assert result.skip_reason == SkipReason.SKIP_CONDITION
        assert mock_runner.commands == ["is-ci"]

    def test_skip_command_nonzero_runs(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("is-ci", 1)
        group = make_group("g", [_check_fix(["check"])], skip={"command": "is-ci"})
        result = self._executor(context, mock_runner).run(group, {})
        assert result.status == GroupStatus.SUCCEEDED
        assert mock_runner.commands == ["is-ci", "check"]

    @pytest.mark.parametrize("dep_result", [
        GroupResult(group="dep", status=GroupStatus.FAILED),
        GroupResult.skipped("dep", SkipReason.SKIP_CONDITION),
    ])
    def test_unmet_dependency_skips(self, context, mock_runner, make_group, dep_result):
        group = make_group("g", [_check_fix(["check"])], needs=["dep"])
        result = self._executor(context, mock_runner).run(group, {"dep": dep_result})
        assert result.status == GroupStatus.SKIPPED
        assert result.skip_reason == SkipReason.DEPENDENCY_NOT_MET
        assert result.actions == []
        assert mock_runner.call_count == 0

    def test_optional_failure_does_not_fail_group(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("check", 1)
        group = make_group("g", [_check_fix(["check"], required=False)])
        result = self._executor(context, mock_runner).run(group, {})
        assert result.status == GroupStatus.SUCCEEDED
        assert result.actions[0].status == ActionStatus.FAILED_NO_FIX

    def test_required_failure_continues(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("bad", 1)
        group = make_group("g", [
            {"name": "first", "check": {"commands": ["bad"]}},
            {"name": "second", "check": {"commands": ["good"]}},
        ])
        result = self._executor(context, mock_runner).run(group, {})
        assert result.status == GroupStatus.FAILED
        assert mock_runner.commands == ["bad", "good"]
        assert [a.action for a in result.failed_actions] == ["first"]

    def test_fatal_stops_group(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("boom", 100)
        group = make_group("g", [
            {"name": "first", "check": {"commands": ["boom"]}},
            {"name": "second", "check": {"commands": ["never"]}},
        ])
        result = self._executor(context, mock_runner).run(group, {})
        assert result.status == GroupStatus.FAILED
        assert result.halt_requested
        assert mock_runner.calls_to("never") == 0

    def test_engine_error_fails_group(self, context, make_group):
        group = make_group("g", [_check_fix(["check"])])
        result = self._executor(context, _ExplodingRunner()).run(group, {})
        assert result.status == GroupStatus.FAILED
        assert "no such shell" in result.error

    def test_engine_error_keeps_earlier_outcomes(self, context, make_group):
        runner = _ExplodingDetailsRunner()
        runner.set_exit_code("check", 100)
        group = make_group("g", [_check_fix(["check"])], report_extra_details={"node": "node --version"})
        result = self._executor(context, runner).run(group, {})
        assert result.status == GroupStatus.FAILED
        assert result.halt_requested
        assert [a.status for a in result.actions] == [ActionStatus.FATAL]
        assert "no such shell" in result.error

    def test_engine_error_mid_group_keeps_passed_actions(self, context, make_group):
        class _Runner(MockRunner):
            def run(self, request: CommandRequest) -> CommandReport:
                if request.command == "boom":
                    raise ProcessSpawnError(request.command, "no such shell")
                return super().run(request)

        group = make_group("g", [
            {"name": "first", "check": {"commands": ["ok"]}},
            {"name": "second", "check": {"commands": ["boom"]}},
            {"name": "third", "check": {"commands": ["never"]}},
        ])
        runner = _Runner()
        result = self._executor(context, runner).run(group, {})
        assert result.status == GroupStatus.FAILED
        assert [a.action for a in result.actions] == ["first"]
        assert runner.calls_to("never") == 0

    def test_extra_details(self, context, mock_runner, make_group):
        mock_runner.set_exit_code("node --version", 0, output="v20.1.0")
        group = make_group("g", [_check_fix(["check"])], report_extra_details={"node": "node --version"})
        result = self._executor(context, mock_runner).run(group, {})
        assert len(result.extra_details) == 1
        assert result.extra_details[0].name == "node"
        assert result.extra_details[0].output == "v20.1.0"

    def test_progress_events(self, context, mock_runner, make_group, progress):
        group = make_group("g", [_check_fix(["check"])])
        self._executor(context, mock_runner, progress).run(group, {})
        assert progress.events == [
            ("start", "g", 1),
            ("action", "g", "a"),
            ("finished", "g", "a", ActionStatus.PASSED),
            ("finish", "g", GroupStatus.SUCCEEDED),
        ]


# ── Doctor use case ──────────────────────────────────────────────────


class TestRunDoctor:
    def _config(self, tmp_path: Path, groups) -> FoundConfig:
        return FoundConfig(working_dir=tmp_path, groups=groups)

    def test_ci_mode_denies_prompts(self, tmp_path, context, mock_runner, make_group, approve):
        mock_runner.set_exit_code("check", 1)
        action = _check_fix(["check"])
        action["fix"] = {"commands": ["fix"], "prompt": {"text": "Fix it?"}}
        config = self._config(tmp_path, [make_group("g", [action])])

        run = run_doctor(
            config, DoctorRunOptions(ci_mode=True), interaction=approve,
            runner=mock_runner, cache=NoOpCache(), context=context,
        )
        assert not run.success
        assert run.get("g").actions[0].status == ActionStatus.FIX_DENIED
        assert approve.prompts == []
        assert mock_runner.calls_to("fix") == 0

    def test_cache_persisted_between_runs(self, tmp_path, context, mock_runner, make_group, tmp_cache_path):
        (tmp_path / "marker").write_text("v1")
        group = make_group("g", [_check_fix(["check"], check={"paths": ["marker"], "commands": ["check"]})])
        config = self._config(tmp_path, [group])

        run_doctor(config, runner=mock_runner, cache=FileCache(tmp_cache_path), context=context)
        assert tmp_cache_path.is_file()

        run = run_doctor(config, runner=mock_runner, cache=FileCache(tmp_cache_path), context=context)
        assert run.get("g").actions[0].status == ActionStatus.PASSED_CACHED
        assert mock_runner.calls_to("check") == 1

    def test_only_groups(self, tmp_path, context, mock_runner, make_group):
        groups = [make_group("a", [_check_fix(["check-a"])]), make_group("b", [_check_fix(["check-b"])])]
        run = run_doctor(
            self._config(tmp_path, groups), DoctorRunOptions.for_groups(["b"]),
            runner=mock_runner, cache=NoOpCache(), context=context,
        )
        assert run.succeeded == {"b"}
        assert mock_runner.commands == ["check-b"]

    def test_list_groups_dependency_order(self, tmp_path, make_group):
        groups = [make_group("app", needs=["base"]), make_group("base")]
        assert [g.name for g in list_groups(self._config(tmp_path, groups))] == ["base", "app"]
