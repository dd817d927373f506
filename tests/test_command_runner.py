import asyncio

import pytest

from core.command.runner import CommandRunner


@pytest.mark.asyncio
async def test_run_captures_stdout_and_stderr():
    result = await CommandRunner().run("printf 'out'; printf 'err' >&2")

    assert result.success is True
    assert result.stdout == "out"
    assert result.stderr == "err"
    assert result.exit_code == 0
    assert result.error is None


@pytest.mark.asyncio
async def test_run_uses_cwd(tmp_path):
    result = await CommandRunner().run("pwd", cwd=str(tmp_path))

    assert result.stdout.strip() == str(tmp_path.resolve())


@pytest.mark.asyncio
async def test_non_zero_exit_is_reported_not_raised():
    result = await CommandRunner().run("echo broken >&2; exit 3")

    assert result.success is False
    assert result.exit_code == 3
    assert result.error == "Command failed with exit code 3: echo broken >&2; exit 3"
    assert result.stderr.strip() == "broken"


@pytest.mark.asyncio
async def test_timeout_kills_the_command():
    result = await CommandRunner(timeout=0.2).run("sleep 5")

    assert result.success is False
    assert result.timed_out is True
    assert result.error == "Command timed out after 0.2s"


@pytest.mark.asyncio
async def test_per_call_timeout_overrides_default():
    result = await CommandRunner(timeout=300).run("sleep 5", timeout=0.2)

    assert result.timed_out is True


@pytest.mark.asyncio
async def test_timeout_kills_child_processes_of_the_shell():
    loop = asyncio.get_running_loop()
    started = loop.time()

    result = await CommandRunner(timeout=1).run("sleep 6; true")

    assert result.timed_out is True
    assert loop.time() - started < 3


@pytest.mark.asyncio
async def test_timeout_keeps_captured_stderr():
    result = await CommandRunner(timeout=1).run("echo oops >&2; sleep 5")

    assert result.timed_out is True
    assert "oops" in result.stderr


@pytest.mark.asyncio
async def test_output_over_limit_fails():
    result = await CommandRunner(max_buffer=16).run("head -c 1000 /dev/zero")

    assert result.success is False
    assert result.error == "Output exceeded 16 bytes"


@pytest.mark.asyncio
async def test_spawn_error_becomes_failed_result(tmp_path):
    result = await CommandRunner().run("true", cwd=str(tmp_path / "missing"))

    assert result.success is False
    assert result.error


def test_to_dict_shapes():
    from core.command.runner import CommandResult

    assert CommandResult(success=True, stdout="x").to_dict() == {"success": True, "stdout": "x", "stderr": ""}
    assert CommandResult(success=False, error="boom").to_dict() == {"success": False, "error": "boom", "stderr": ""}
