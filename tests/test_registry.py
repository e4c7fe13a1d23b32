import pytest

from codeplug_flasher.models import RadioModel, create_radio, get_model, list_models, parse_model
from codeplug_flasher.protocol.bf888 import BF888Driver
from codeplug_flasher.protocol.errors import UnsupportedModelError
from codeplug_flasher.protocol.kt8900 import KT8900Driver

from conftest import FakeBF888


@pytest.mark.parametrize("tag", ["bf-888", "BF-888", "bf888", " Bf-888 ", RadioModel.BF888])
def test_parse_bf888_selectors(tag):
    assert parse_model(tag) is RadioModel.BF888


@pytest.mark.parametrize("tag", ["kt-8900", "KT8900", "KT-8900"])
def test_parse_kt8900_selectors(tag):
    assert parse_model(tag) is RadioModel.KT8900


def test_unknown_model_rejected():
    with pytest.raises(UnsupportedModelError):
        parse_model("uv-5r")
    # Callers treating it as a bad value still catch it
    with pytest.raises(ValueError):
        get_model("")


def test_list_models_order():
    assert [cfg.model for cfg in list_models()] == [RadioModel.BF888, RadioModel.KT8900]


def test_model_configs():
    bf = get_model("bf-888")
    assert bf.mem_size == 0x3E0
    assert bf.upload_size == 0x180
    assert bf.read_block_size == bf.write_block_size == 8
    assert bf.settle_delay == 0.2

    kt = get_model("kt-8900")
    assert kt.mem_size == 0x4000
    assert kt.upload_size == 0x3100
    assert (kt.read_block_size, kt.write_block_size) == (0x40, 0x10)
    assert kt.settle_delay == 2.0
    assert kt.vendor == "QYT"


def test_create_radio_builds_matching_driver():
    backend = FakeBF888()
    driver = create_radio("bf-888", backend, dry_run=True)
    assert isinstance(driver, BF888Driver)
    assert driver.backend is backend
    assert driver.dry_run is True

    assert isinstance(create_radio(RadioModel.KT8900, FakeBF888()), KT8900Driver)


def test_create_radio_unknown_model():
    with pytest.raises(UnsupportedModelError):
        create_radio("bf-999", FakeBF888())
