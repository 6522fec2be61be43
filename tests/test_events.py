from macfluid import Signal


def test_emit_calls_in_connection_order():
    calls = []
    signal = Signal()
    signal.connect(lambda: calls.append("a"))
    signal.connect(lambda: calls.append("b"))
    signal.emit()
    assert calls == ["a", "b"]


def test_duplicate_connection_ignored():
    calls = []

    def callback():
        calls.append(1)

    signal = Signal()
    signal.connect(callback)
    signal.connect(callback)
    signal.emit()
    assert calls == [1]
    assert len(signal) == 1


def test_disconnect():
    calls = []

    def callback():
        calls.append(1)

    signal = Signal()
    signal.connect(callback)
    signal.disconnect(callback)
    signal.disconnect(callback)
    signal.emit()
    assert calls == []


def test_callback_may_disconnect_itself():
    calls = []
    signal = Signal()

    def once():
        calls.append("once")
        signal.disconnect(once)

    signal.connect(once)
    signal.connect(lambda: calls.append("always"))
    signal.emit()
    signal.emit()
    assert calls == ["once", "always", "always"]
