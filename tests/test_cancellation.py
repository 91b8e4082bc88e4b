import pytest

from diagram_ai.providers.cancellation import CancellationToken, RequestCancelled


def test_fresh_token_is_not_cancelled():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()


def test_cancel_raises():
    token = CancellationToken()
    token.cancel()
    assert token.cancelled
    with pytest.raises(RequestCancelled, match="Request was cancelled"):
        token.raise_if_cancelled()


def test_callback_runs_once_while_registered():
    token = CancellationToken()
    fired = []
    with token.on_cancel(lambda: fired.append("closed")):
        token.cancel()
        token.cancel()
    assert fired == ["closed"]


def test_callback_not_run_after_block_exits():
    token = CancellationToken()
    fired = []
    with token.on_cancel(lambda: fired.append("closed")):
        pass
    token.cancel()
    assert fired == []


def test_callback_runs_immediately_on_cancelled_token():
    token = CancellationToken()
    token.cancel()
    fired = []
    with token.on_cancel(lambda: fired.append("closed")):
        assert fired == ["closed"]
