import os
import time

from common.tempfiles import ensure_temp_dir, sweep_later, sweep_temp_dir, unique_name


def test_old_files_are_swept_new_files_are_kept(tmp_path):
    old = tmp_path / "analysis_old.json"
    new = tmp_path / "image_new.png"
    old.write_text("{}")
    new.write_bytes(b"fresh")

    two_minutes_ago = time.time() - 120
    os.utime(old, (two_minutes_ago, two_minutes_ago))

    removed = sweep_temp_dir(tmp_path, max_age=60)

    assert removed == [old]
    assert not old.exists()
    assert new.exists()


def test_sweep_ignores_subdirectories_and_missing_dir(tmp_path):
    (tmp_path / "nested").mkdir()
    assert sweep_temp_dir(tmp_path, max_age=0, now=time.time() + 3600) == []
    assert sweep_temp_dir(tmp_path / "does-not-exist") == []


async def test_sweep_later(tmp_path):
    stale = tmp_path / "stale.png"
    stale.write_bytes(b"x")
    os.utime(stale, (0, 0))

    removed = await sweep_later(0, tmp_path, max_age=60)
    assert removed == [stale]


def test_unique_name():
    first = unique_name("image", ".png", "source")
    second = unique_name("image", ".png", "source")

    assert first != second
    assert first.startswith("source_image_")
    assert first.endswith(".png")
    assert unique_name("../../etc/passwd", "json").startswith("etc_passwd_")


def test_ensure_temp_dir_creates_directory(tmp_path):
    target = tmp_path / "a" / "b"
    assert ensure_temp_dir(target) == target
    assert target.is_dir()
