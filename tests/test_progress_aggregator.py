import asyncio

import pytest

from client.progress_aggregator import FileState, LocalFile, ProgressAggregator, file_percent


class FakeView:
    def __init__(self):
        self.statuses = []
        self.modal_open = False
        self.modal_events = []
        self.listings = []

    def open_modal(self):
        self.modal_open = True
        self.modal_events.append("open")

    def close_modal(self):
        self.modal_open = False
        self.modal_events.append("close")

    def update_status(self, percent):
        self.statuses.append(percent)

    def update_current_files(self, files):
        self.listings.append(files)


class FakeConnectionManager:
    def __init__(self):
        self.on_progress = None
        self.gate = asyncio.Event()
        self.uploaded = []
        self.listing_calls = 0
        self.fail = set()

    def configure_events(self, on_progress):
        self.on_progress = on_progress

    async def upload_file(self, file):
        await self.gate.wait()
        if file.name in self.fail:
            raise ConnectionError(f"upload of {file.name} failed")
        self.uploaded.append(file.name)
        return {"result": "Files uploaded with success!"}

    async def current_files(self):
        self.listing_calls += 1
        return [{"file": n} for n in self.uploaded]


@pytest.fixture
def view():
    return FakeView()


@pytest.fixture
def cm():
    return FakeConnectionManager()


@pytest.fixture
def agg(view, cm):
    return ProgressAggregator(view, cm, close_delay=0)


@pytest.mark.parametrize("processed,size,expected", [
    (0, 100, 0), (1, 100, 1), (196, 200, 98), (1, 3, 34), (200, 200, 100), (0, 0, 100),
])
def test_file_percent_rounds_up(processed, size, expected):
    assert file_percent(processed, size) == expected


@pytest.mark.asyncio
async def test_initialize_wires_events_and_reads_listing(agg, view, cm):
    await agg.initialize()
    assert cm.on_progress == agg.on_progress
    assert view.statuses == [0]
    assert cm.listing_calls == 1


@pytest.mark.asyncio
async def test_sum_of_percents_and_one_refresh_per_file(agg, view, cm):
    batch = asyncio.create_task(agg.on_file_change([LocalFile("a", 100), LocalFile("b", 200)]))
    await asyncio.sleep(0)
    assert view.modal_open
    assert {f.state for f in agg.uploading_files.values()} == {FileState.PENDING}

    await agg.on_progress({"processedAlready": 100, "filename": "a"})
    await agg.on_progress({"processedAlready": 196, "filename": "b"})

    assert agg.aggregate_percent() == 198
    assert view.statuses[-1] == 198
    assert cm.listing_calls == 2
    assert agg.uploading_files["b"].state is FileState.NEAR_COMPLETE

    # replayed and later events never double count nor refresh again
    await agg.on_progress({"processedAlready": 196, "filename": "b"})
    await agg.on_progress({"processedAlready": 200, "filename": "b"})
    assert agg.aggregate_percent() == 200
    assert cm.listing_calls == 2

    cm.gate.set()
    await batch
    await agg.wait_idle()

    assert view.statuses[-1] == 100
    assert cm.listing_calls == 3
    assert {f.state for f in agg.uploading_files.values()} == {FileState.SETTLED}
    assert view.modal_events == ["open", "close"]


@pytest.mark.asyncio
async def test_progress_below_threshold_does_not_refresh(agg, view, cm):
    batch = asyncio.create_task(agg.on_file_change([LocalFile("a", 1000)]))
    await asyncio.sleep(0)
    await agg.on_progress({"processedAlready": 500, "filename": "a"})
    assert agg.uploading_files["a"].state is FileState.IN_PROGRESS
    assert view.statuses[-1] == 50
    assert cm.listing_calls == 0
    cm.gate.set()
    await batch
    await agg.wait_idle()


@pytest.mark.asyncio
async def test_new_batch_clears_previous_state(agg, view, cm):
    cm.gate.set()
    await agg.on_file_change([LocalFile("old", 10)])
    await agg.on_file_change([LocalFile("new", 10)])
    assert list(agg.uploading_files) == ["new"]
    assert view.statuses.count(0) == 2
    await agg.wait_idle()


@pytest.mark.asyncio
async def test_unknown_filename_is_ignored(agg, view, cm):
    batch = asyncio.create_task(agg.on_file_change([LocalFile("a", 100)]))
    await asyncio.sleep(0)
    before = list(view.statuses)
    await agg.on_progress({"processedAlready": 50, "filename": "stranger"})
    assert view.statuses == before
    assert agg.aggregate_percent() == 0
    cm.gate.set()
    await batch
    await agg.wait_idle()


@pytest.mark.asyncio
async def test_zero_byte_file_counts_as_done(agg, view, cm):
    batch = asyncio.create_task(agg.on_file_change([LocalFile("empty", 0)]))
    await asyncio.sleep(0)
    await agg.on_progress({"processedAlready": 0, "filename": "empty"})
    assert agg.aggregate_percent() == 100
    assert agg.uploading_files["empty"].state is FileState.NEAR_COMPLETE
    cm.gate.set()
    await batch
    await agg.wait_idle()


@pytest.mark.asyncio
async def test_failed_upload_propagates_and_leaves_modal_open(agg, view, cm):
    cm.fail = {"bad"}
    cm.gate.set()
    with pytest.raises(ConnectionError):
        await agg.on_file_change([LocalFile("good", 1), LocalFile("bad", 1)])
    assert view.modal_open
    assert 100 not in view.statuses
    assert cm.listing_calls == 0


def test_local_file_from_path(tmp_path):
    p = tmp_path / "doc.txt"
    p.write_bytes(b"12345")
    f = LocalFile.from_path(str(p))
    assert (f.name, f.size, f.path) == ("doc.txt", 5, str(p))


@pytest.mark.asyncio
async def test_late_events_after_settling_keep_status_at_100(agg, view, cm):
    cm.gate.set()
    await agg.on_file_change([LocalFile("a", 100), LocalFile("b", 100)])
    await agg.wait_idle()
    listings = cm.listing_calls

    await agg.on_progress({"processedAlready": 100, "filename": "a"})
    await agg.on_progress({"processedAlready": 100, "filename": "b"})

    assert view.statuses == [0, 100]
    assert cm.listing_calls == listings
    assert {f.state for f in agg.uploading_files.values()} == {FileState.SETTLED}


@pytest.mark.asyncio
async def test_silent_files_are_completed_when_the_batch_settles(agg, view, cm):
    batch = asyncio.create_task(agg.on_file_change([LocalFile("quiet", 100), LocalFile("half", 100)]))
    await asyncio.sleep(0)
    await agg.on_progress({"processedAlready": 40, "filename": "half"})
    cm.gate.set()
    await batch
    await agg.wait_idle()

    assert {f.percent for f in agg.uploading_files.values()} == {100}
    assert {f.state for f in agg.uploading_files.values()} == {FileState.SETTLED}
    assert view.statuses[-1] == 100
