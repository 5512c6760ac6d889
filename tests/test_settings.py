import json

import pytest

from dds_core import CodecSettings, CompressionParams


def test_defaults():
    settings = CodecSettings()
    assert settings.legacy_a8_encode is False
    assert settings.compression == CompressionParams(
        algorithm="iterative_cluster_fit",
        uniform_weighting=True,
        weigh_colour_by_alpha=True,
    )


def test_to_dict_from_dict_round_trip():
    settings = CodecSettings(legacy_a8_encode=True,
                             compression=CompressionParams(uniform_weighting=False))
    assert CodecSettings.from_dict(settings.to_dict()) == settings


def test_from_dict_partial():
    settings = CodecSettings.from_dict({'compression': {'weigh_colour_by_alpha': False}})
    assert settings.legacy_a8_encode is False
    assert settings.compression.weigh_colour_by_alpha is False
    assert settings.compression.uniform_weighting is True


def test_from_dict_unknown_key():
    with pytest.raises(ValueError, match="tile_size"):
        CodecSettings.from_dict({'tile_size': 8})


def test_from_dict_unknown_compression_key():
    with pytest.raises(ValueError, match="quality"):
        CodecSettings.from_dict({'compression': {'quality': 'high'}})


def test_compression_must_be_params():
    with pytest.raises(ValueError):
        CodecSettings(compression="fast")


def test_from_json(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({'legacy_a8_encode': True}))
    assert CodecSettings.from_json(path).legacy_a8_encode is True


@pytest.mark.parametrize("algorithm", ["range_fit", "cluster_fit", "iterative_cluster_fit"])
def test_known_algorithms(algorithm):
    assert CompressionParams(algorithm=algorithm).algorithm == algorithm


def test_unknown_algorithm():
    with pytest.raises(ValueError):
        CompressionParams(algorithm="fastest")
    with pytest.raises(ValueError):
        CodecSettings.from_dict({'compression': {'algorithm': 'fastest'}})
