from kungfu import Error, LazyCoroResult, Ok, Result

from retailfabric import saga as S


class Ledger:
    def __init__(self) -> None:
        self.events: list[str] = []

    def action(self, name: str, *, fail: bool = False) -> LazyCoroResult[str, str]:
        async def run() -> Result[str, str]:
            self.events.append(f"do {name}")
            if fail:
                return Error(f"{name} failed")
            return Ok(name)

        return LazyCoroResult(run)

    async def undo(self, value: str) -> None:
        self.events.append(f"undo {value}")


async def test_single_step_success() -> None:
    ledger = Ledger()

    match await S.run(S.step(ledger.action("upload"), compensate=ledger.undo)):
        case Ok(result):
            assert result.value == "upload"
            assert result.steps_executed == 1
            assert result.compensators_recorded == 1
        case Error(e):
            raise AssertionError(e)

    assert ledger.events == ["do upload"]


async def test_chain_passes_value_forward() -> None:
    ledger = Ledger()
    chain = S.step(ledger.action("upload"), compensate=ledger.undo).then(
        lambda ref: S.step(ledger.action(f"write:{ref}"))
    )

    result = await S.run_chain(chain)

    assert result.value.value == "write:upload"
    assert result.value.steps_executed == 2
    assert ledger.events == ["do upload", "do write:upload"]


async def test_second_step_failure_compensates_the_first() -> None:
    ledger = Ledger()
    chain = S.step(ledger.action("upload"), compensate=ledger.undo).then(
        lambda _: S.step(ledger.action("write", fail=True))
    )

    match await S.run_chain(chain, correlation_id="cid"):
        case Error(failed):
            assert failed.error == "write failed"
            assert failed.step_failed == 2
            assert failed.compensators_run == 1
            assert failed.rollback_complete
        case Ok(_):
            raise AssertionError("chain should fail")

    assert ledger.events == ["do upload", "do write", "undo upload"]


async def test_first_step_failure_runs_nothing_else() -> None:
    ledger = Ledger()
    chain = S.step(ledger.action("upload", fail=True), compensate=ledger.undo).then(
        lambda _: S.step(ledger.action("write"))
    )

    failed = (await S.run_chain(chain)).value

    assert failed.step_failed == 1
    assert failed.compensators_run == 0
    assert ledger.events == ["do upload"]


async def test_raising_compensator_marks_rollback_incomplete() -> None:
    async def broken(_: str) -> None:
        raise RuntimeError("cannot undo")

    ledger = Ledger()
    chain = S.step(ledger.action("upload"), compensate=broken).then(
        lambda _: S.step(ledger.action("write", fail=True))
    )

    failed = (await S.run_chain(chain)).value

    assert failed.compensators_failed == 1
    assert not failed.rollback_complete


async def test_from_async_turns_exceptions_into_errors() -> None:
    async def explode() -> str:
        raise ConnectionError("gateway down")

    result = await S.run(S.from_async(explode, on_error=lambda e: f"wrapped: {e}"))

    assert isinstance(result, Error)
    assert result.value.error == "wrapped: gateway down"
