import pytest

from rctkit.cpuusage import CpuUsage, read_idle_ticks


def make_usage(tmp_path, hz=100, cores=1):
    return CpuUsage(stat_path=tmp_path / "missing", hz=hz, cores=cores)


def test_read_idle_ticks(tmp_path):
    path = tmp_path / "stat"
    path.write_text("cpu  10 20 30 40 50 60\ncpu0 1 2 3 4\n")
    assert read_idle_ticks(path) == 40


def test_read_idle_ticks_malformed(tmp_path):
    path = tmp_path / "stat"
    path.write_text("cpu 1 2\n")
    with pytest.raises(ValueError):
        read_idle_ticks(path)


def test_read_idle_ticks_non_numeric(tmp_path):
    path = tmp_path / "stat"
    path.write_text("cpu a b c d\n")
    with pytest.raises(ValueError):
        read_idle_ticks(path)


def test_read_idle_ticks_missing(tmp_path):
    with pytest.raises(OSError):
        read_idle_ticks(tmp_path / "missing")


def test_no_samples_means_full_usage(tmp_path):
    cpu = make_usage(tmp_path)
    try:
        assert cpu.usage() == 1.0
    finally:
        cpu.stop()


def test_single_sample_changes_nothing(tmp_path):
    cpu = make_usage(tmp_path)
    try:
        cpu.sample(500, 1000)
        assert cpu.usage() == 1.0
    finally:
        cpu.stop()


def test_half_idle(tmp_path):
    cpu = make_usage(tmp_path, hz=100, cores=1)
    try:
        cpu.sample(1000, 1000)
        cpu.sample(1050, 2000)
        assert cpu.usage() == pytest.approx(0.5)
    finally:
        cpu.stop()


def test_idle_spread_over_cores(tmp_path):
    cpu = make_usage(tmp_path, hz=100, cores=2)
    try:
        cpu.sample(0, 1000)
        cpu.sample(200, 2000)
        assert cpu.usage() == pytest.approx(0.0)
    finally:
        cpu.stop()


def test_wrapped_counter_resets(tmp_path):
    cpu = make_usage(tmp_path, hz=100, cores=1)
    try:
        cpu.sample(1000, 1000)
        cpu.sample(1050, 2000)
        cpu.sample(10, 3000)
        assert cpu.usage() == 1.0
    finally:
        cpu.stop()


def test_sample_times_must_increase(tmp_path):
    cpu = make_usage(tmp_path)
    cpu.sample(10, 1000)
    with pytest.raises(ValueError):
        cpu.sample(20, 1000)


def test_usage_stays_in_range(tmp_path):
    cpu = make_usage(tmp_path, hz=100, cores=4)
    try:
        cpu.sample(0, 1000)
        cpu.sample(150, 2000)
        value = cpu.usage()
        assert 0.0 <= value <= 1.0
    finally:
        cpu.stop()