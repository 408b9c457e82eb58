import time

import pytest

from gptkit.har import HarPath, HarProvider


def test_empty_directory_gives_no_file(tmp_path):
    provider = HarProvider(tmp_path, ".gpt3")
    result = provider.pool()
    assert result == HarPath(tmp_path, None)


def test_missing_directory_is_created(tmp_path):
    target = tmp_path / "nested" / "hars"
    provider = HarProvider(target, ".gpt3")
    assert target.is_dir()
    assert provider.pool().dir_path == target


def test_round_robin_over_har_files(tmp_path):
    (tmp_path / "a.har").write_text("{}")
    (tmp_path / "b.har").write_text("{}")
    (tmp_path / "notes.txt").write_text("x")
    provider = HarProvider(tmp_path, ".gpt3")
    results = [provider.pool().file_path for _ in range(4)]
    assert results == [
        tmp_path / "b.har",
        tmp_path / "a.har",
        tmp_path / "b.har",
        tmp_path / "a.har",
    ]


def test_single_file_is_always_returned(tmp_path):
    (tmp_path / "only.har").write_text("{}")
    provider = HarProvider(tmp_path, ".gpt3")
    assert {provider.pool().file_path for _ in range(3)} == {tmp_path / "only.har"}


def test_files_without_har_extension_are_ignored(tmp_path):
    (tmp_path / "record.json").write_text("{}")
    (tmp_path / ".har").write_text("{}")
    provider = HarProvider(tmp_path, ".gpt3")
    assert provider.pool().file_path is None


def test_reset_pool_picks_up_new_files(tmp_path):
    provider = HarProvider(tmp_path, ".gpt3")
    assert provider.pool().file_path is None
    (tmp_path / "c.har").write_text("{}")
    provider.reset_pool()
    assert provider.pool().file_path == tmp_path / "c.har"


def test_reset_pool_drops_removed_files(tmp_path):
    record = tmp_path / "gone.har"
    record.write_text("{}")
    provider = HarProvider(tmp_path, ".gpt3")
    record.unlink()
    provider.reset_pool()
    assert provider.pool().file_path is None


def test_default_directory_under_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    provider = HarProvider(None, ".gpt4")
    assert provider.pool().dir_path == tmp_path / ".gpt4"
    assert (tmp_path / ".gpt4").is_dir()


def test_missing_home_raises(monkeypatch):
    monkeypatch.delenv("HOME", raising=False)
    monkeypatch.delenv("USERPROFILE", raising=False)
    with pytest.raises(RuntimeError):
        HarProvider(None, ".auth")


def test_watch_refreshes_pool(tmp_path):
    with HarProvider(tmp_path, ".gpt3") as provider:
        (tmp_path / "fresh.har").write_text("{}")
        deadline = time.monotonic() + 10
        found = provider.pool().file_path
        while found is None and time.monotonic() < deadline:
            time.sleep(0.05)
            found = provider.pool().file_path
    assert found == tmp_path / "fresh.har"


def test_close_twice_keeps_provider_usable(tmp_path):
    (tmp_path / "a.har").write_text("{}")
    provider = HarProvider(tmp_path, ".gpt3").watch()
    provider.close()
    provider.close()
    assert provider.pool().file_path == tmp_path / "a.har"