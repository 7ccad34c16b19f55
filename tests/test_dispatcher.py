"""Unit tests for build dispatch: dry run, confirmation, builder context and trailing steps."""

from __future__ import annotations

from typing import List

import pytest

from conftest import FIXED_METADATA, FakeCommandRunner, make_result
from rocm_build.build.builder_context import BuilderContext
from rocm_build.build.dispatcher import BuildDispatcher, confirm, exit_status
from rocm_build.build.invocation import InvocationBuilder
from rocm_build.build.models import Invocation, InvocationOptions, OutcomeStatus
from rocm_build.common.errors import ExternalToolError
from rocm_build.config.resolver import EffectiveConfig
from rocm_build.config.settings import BuildSettings

BUILD = ("docker", "buildx", "build")
INSPECT = ("docker", "buildx", "inspect")
CREATE = ("docker", "buildx", "create")


class StubStep:
    """Stands in for the scanner or signer."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.images: List[str] = []

    def _record(self, image: str) -> None:
        self.images.append(image)
        if self.fail:
            raise ExternalToolError("stub", "stub step failed", exit_code=1)

    scan = _record
    sign = _record


def make_invocation(options: InvocationOptions, arch: str = "gfx1151") -> Invocation:
    config = EffectiveConfig.from_values("7.1-complete", "b7079", arch)
    return InvocationBuilder(BuildSettings(), metadata_provider=lambda: FIXED_METADATA).build(config, options)


def make_dispatcher(runner: FakeCommandRunner, *, answer: bool = True, scanner=None, signer=None, printed=None):
    prompts: List[bool] = []

    def confirm_push() -> bool:
        prompts.append(True)
        return answer

    dispatcher = BuildDispatcher(
        runner,
        BuildSettings(),
        confirm_push=confirm_push,
        printer=(printed.append if printed is not None else lambda _: None),
        scanner=scanner or StubStep(),
        signer=signer or StubStep(),
    )
    return dispatcher, prompts


@pytest.mark.parametrize(
    "options",
    [
        InvocationOptions(dry_run=True),
        InvocationOptions(dry_run=True, push=True, scan=True, sign=True, no_cache=True),
    ],
)
def test_dry_run_prints_and_executes_nothing(runner: FakeCommandRunner, options: InvocationOptions) -> None:
    printed: List[str] = []
    scanner, signer = StubStep(), StubStep()
    dispatcher, prompts = make_dispatcher(runner, printed=printed, scanner=scanner, signer=signer)
    invocation = make_invocation(options)

    outcome = dispatcher.dispatch(invocation, options)

    assert outcome.status is OutcomeStatus.DRY_RUN
    assert outcome.exit_code == 0
    assert printed == [invocation.render()]
    assert runner.calls == []
    assert prompts == []
    assert scanner.images == [] and signer.images == []


def test_declined_push_is_cancelled_without_building(runner: FakeCommandRunner) -> None:
    options = InvocationOptions(push=True)
    dispatcher, prompts = make_dispatcher(runner, answer=False)

    outcome = dispatcher.dispatch(make_invocation(options), options)

    assert outcome.status is OutcomeStatus.CANCELLED
    assert outcome.exit_code == 0
    assert prompts == [True]
    assert runner.calls == []


def test_confirmed_push_builds(runner: FakeCommandRunner) -> None:
    options = InvocationOptions(push=True)
    dispatcher, _ = make_dispatcher(runner, answer=True)

    outcome = dispatcher.dispatch(make_invocation(options), options)

    assert outcome.status is OutcomeStatus.SUCCEEDED
    assert runner.called(*BUILD)
    assert "--push" in runner.calls[-1]


def test_build_without_push_does_not_prompt(runner: FakeCommandRunner) -> None:
    dispatcher, prompts = make_dispatcher(runner)

    outcome = dispatcher.dispatch(make_invocation(InvocationOptions()), InvocationOptions())

    assert outcome.success
    assert prompts == []


def test_build_runs_the_exact_argument_vector_uncaptured(runner: FakeCommandRunner) -> None:
    dispatcher, _ = make_dispatcher(runner)
    invocation = make_invocation(InvocationOptions())

    dispatcher.dispatch(invocation, InvocationOptions())

    assert runner.calls[-1] == list(invocation.argv)
    assert runner.capture_flags[-1] is False


def test_build_failure_exit_code_is_propagated() -> None:
    runner = FakeCommandRunner({BUILD: make_result(BUILD, 17)})
    scanner, signer = StubStep(), StubStep()
    dispatcher, _ = make_dispatcher(runner, scanner=scanner, signer=signer)
    options = InvocationOptions(scan=True, sign=True)

    outcome = dispatcher.dispatch(make_invocation(options), options)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.exit_code == 17
    assert scanner.images == [] and signer.images == []


def test_signal_killed_build_exits_with_shell_status() -> None:
    runner = FakeCommandRunner({BUILD: make_result(BUILD, -9)})
    dispatcher, _ = make_dispatcher(runner)

    outcome = dispatcher.dispatch(make_invocation(InvocationOptions()), InvocationOptions())

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.exit_code == 137


@pytest.mark.parametrize("return_code, expected", [(0, 0), (1, 1), (17, 17), (-2, 130), (-15, 143)])
def test_exit_status(return_code: int, expected: int) -> None:
    assert exit_status(return_code) == expected


def test_missing_docker_binary_raises() -> None:
    runner = FakeCommandRunner({("docker",): make_result(["docker"], None, tool_available=False)})
    dispatcher, _ = make_dispatcher(runner)

    with pytest.raises(ExternalToolError) as exc_info:
        dispatcher.dispatch(make_invocation(InvocationOptions()), InvocationOptions())

    assert exc_info.value.tool_missing
    assert exc_info.value.exit_code == 127


def test_trailing_steps_use_the_latest_tag(runner: FakeCommandRunner) -> None:
    scanner, signer = StubStep(), StubStep()
    dispatcher, _ = make_dispatcher(runner, scanner=scanner, signer=signer)
    options = InvocationOptions(scan=True, sign=True)

    outcome = dispatcher.dispatch(make_invocation(options, arch="gfx1151"), options)

    assert outcome.warnings == []
    assert scanner.images == ["cmooreio/rocm-llama.cpp:gfx1151-latest"]
    assert signer.images == ["cmooreio/rocm-llama.cpp:gfx1151-latest"]


def test_trailing_step_failures_do_not_fail_the_build(runner: FakeCommandRunner) -> None:
    scanner, signer = StubStep(fail=True), StubStep(fail=True)
    dispatcher, _ = make_dispatcher(runner, scanner=scanner, signer=signer)
    options = InvocationOptions(scan=True, sign=True)

    outcome = dispatcher.dispatch(make_invocation(options), options)

    assert outcome.status is OutcomeStatus.SUCCEEDED
    assert outcome.exit_code == 0
    assert len(outcome.warnings) == 2
    assert signer.images, "sign still runs after a failed scan"


@pytest.mark.parametrize(
    "reply, expected",
    [("y", True), ("Y", True), ("yes", True), (" YES ", True), ("", False), ("n", False), ("no", False), ("yep", False)],
)
def test_confirm_defaults_to_no(reply: str, expected: bool) -> None:
    assert confirm(reader=lambda _: reply) is expected


def test_confirm_treats_eof_as_no() -> None:
    def reader(_: str) -> str:
        raise EOFError

    assert confirm(reader=reader) is False


def test_confirm_treats_interrupt_as_no() -> None:
    def reader(_: str) -> str:
        raise KeyboardInterrupt

    assert confirm(reader=reader) is False


def test_interrupted_push_prompt_is_cancelled(runner: FakeCommandRunner) -> None:
    def reader(_: str) -> str:
        raise KeyboardInterrupt

    options = InvocationOptions(push=True)
    dispatcher = BuildDispatcher(runner, BuildSettings(), confirm_push=lambda: confirm(reader=reader))

    outcome = dispatcher.dispatch(make_invocation(options), options)

    assert outcome.status is OutcomeStatus.CANCELLED
    assert runner.calls == []


class StatefulBuildx(FakeCommandRunner):
    """Simulates buildx keeping track of which builders exist."""

    def __init__(self, preexisting: bool = False, race: bool = False) -> None:
        super().__init__()
        self.exists = preexisting
        self.race = race

    def run(self, command, *, cwd=None, env=None, capture=True):
        super().run(command, cwd=cwd, env=env, capture=capture)
        prefix = tuple(command[:3])
        if prefix == INSPECT:
            return make_result(command, 0 if self.exists else 1)
        if prefix == CREATE:
            if self.race or self.exists:
                self.exists = True
                return make_result(
                    command,
                    1,
                    stderr='ERROR: existing instance for "llama-rocm-builder" but no append mode',
                )
            self.exists = True
            return make_result(command, 0)
        return make_result(command, 0)


def test_builder_is_created_when_missing() -> None:
    runner = StatefulBuildx()
    context = BuilderContext("llama-rocm-builder", runner)

    assert context.ensure() == "llama-rocm-builder"
    assert runner.called(*CREATE)
    assert ["--name", "llama-rocm-builder"] == runner.calls[1][3:5]
    assert "--bootstrap" in runner.calls[1]


def test_ensure_builder_twice_never_fails() -> None:
    runner = StatefulBuildx()
    context = BuilderContext("llama-rocm-builder", runner)

    context.ensure()
    context.ensure()

    creates = [call for call in runner.calls if tuple(call[:3]) == CREATE]
    assert len(creates) == 1


def test_concurrently_created_builder_counts_as_success() -> None:
    runner = StatefulBuildx(race=True)
    context = BuilderContext("llama-rocm-builder", runner)

    assert context.ensure() == "llama-rocm-builder"


def test_builder_create_failure_raises() -> None:
    runner = FakeCommandRunner(
        {
            INSPECT: make_result(INSPECT, 1),
            CREATE: make_result(CREATE, 1, stderr="permission denied"),
        }
    )

    with pytest.raises(ExternalToolError) as exc_info:
        BuilderContext("llama-rocm-builder", runner).ensure()

    assert exc_info.value.exit_code == 1
    assert "permission denied" in str(exc_info.value)
