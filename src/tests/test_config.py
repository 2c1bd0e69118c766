#!/usr/bin/env python3
"""
Test suite for configuration classes.
Tests include:
1. ModelConfig defaults, validation and display names
2. Preprocess/postprocess/detection config validation
3. YAML/JSON round trips and enum coercion
4. load_config type detection
"""

import pytest

from mlcore.config import (
    DetectionConfig, DeviceType, LandmarkConfig, ModelConfig, ModelFormat,
    PostprocessConfig, PreprocessConfig, TensorLayout, load_config
)

from . import run_test_classes


class TestModelConfig:
    """Test ModelConfig."""

    def test_defaults(self):
        config = ModelConfig(model_path="models/yolo.pt")

        assert config.format == ModelFormat.TORCHSCRIPT
        assert config.device == DeviceType.AUTO
        assert config.num_threads > 0
        assert config.warmup_runs == 1
        assert config.cache_model is True
        assert config.enable_quantization is False
        print("✓ Defaults passed")

    def test_display_name(self):
        assert ModelConfig(model_path="models/yolo.pt").display_name == "yolo"
        assert ModelConfig(model_path="models/yolo.pt", name="person").display_name == "person"
        assert ModelConfig().display_name == "unknown"
        print("✓ Display name passed")

    def test_config_is_frozen(self):
        config = ModelConfig(model_path="a.pt")
        with pytest.raises(AttributeError):
            config.model_path = "b.pt"

        changed = config.replace(warmup_runs=0)
        assert changed.warmup_runs == 0
        assert config.warmup_runs == 1
        print("✓ Immutability passed")

    def test_validation(self):
        with pytest.raises(ValueError):
            ModelConfig(num_threads=0)
        with pytest.raises(ValueError):
            ModelConfig(warmup_runs=-1)
        with pytest.raises(ValueError):
            ModelConfig(input_shapes={'x': []})
        with pytest.raises(ValueError):
            ModelConfig(input_shapes={'x': [1, -2]})
        print("✓ Validation passed")

    def test_yaml_roundtrip(self, tmp_path):
        config = ModelConfig(model_path="models/yolo.pt", device=DeviceType.CPU,
                             input_shapes={'images': [1, 3, 640, 640]}, labels=["person"])
        path = tmp_path / "model.yaml"
        config.save(str(path))

        loaded = ModelConfig.load(str(path))

        assert loaded == config
        assert loaded.device == DeviceType.CPU
        print("✓ YAML round trip passed")

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            ModelConfig.from_dict({'model_path': "a.pt", 'batch_size': 4})
        print("✓ Unknown fields rejected")


class TestInferenceConfigs:
    """Test preprocessing and parser configs."""

    def test_preprocess_validation(self):
        with pytest.raises(ValueError):
            PreprocessConfig(resize=(0, 10))
        with pytest.raises(ValueError):
            PreprocessConfig(mean=(0.5,))
        with pytest.raises(ValueError):
            PreprocessConfig(mean=(0.5, 0.5), std=(0.5,))
        with pytest.raises(ValueError):
            PreprocessConfig(mean=(0.5,), std=(0.0,))
        print("✓ Preprocess validation passed")

    def test_preprocess_normalize_flag(self):
        assert PreprocessConfig().normalize is False
        assert PreprocessConfig(mean=[0.5], std=[0.25]).normalize is True
        assert PreprocessConfig(resize=[64, 32]).resize == (64, 32)
        print("✓ Normalize flag passed")

    def test_parser_config_validation(self):
        with pytest.raises(ValueError):
            PostprocessConfig(top_k=0)
        with pytest.raises(ValueError):
            DetectionConfig(num_classes=0)
        with pytest.raises(ValueError):
            DetectionConfig(input_width=-1)
        with pytest.raises(ValueError):
            LandmarkConfig(num_landmarks=0)
        print("✓ Parser config validation passed")


class TestLoadConfig:
    """Test load_config."""

    def test_auto_detection(self, tmp_path):
        model_path = tmp_path / "model.json"
        ModelConfig(model_path="m.pt").save(str(model_path))
        detection_path = tmp_path / "detection.yaml"
        DetectionConfig(num_classes=3).save(str(detection_path))
        preprocess_path = tmp_path / "preprocess.yaml"
        PreprocessConfig(layout=TensorLayout.NCHW).save(str(preprocess_path))

        assert isinstance(load_config(str(model_path), "auto"), ModelConfig)
        assert load_config(str(detection_path), "auto").num_classes == 3
        assert load_config(str(preprocess_path), "auto").layout == TensorLayout.NCHW
        print("✓ Auto detection passed")

    def test_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

        bad_suffix = tmp_path / "config.txt"
        bad_suffix.write_text("model_path: a.pt")
        with pytest.raises(ValueError):
            load_config(str(bad_suffix))

        path = tmp_path / "model.yaml"
        path.write_text("model_path: a.pt\n")
        with pytest.raises(ValueError):
            load_config(str(path), "training")
        print("✓ Error handling passed")


def run_config_tests():
    """Run all configuration tests."""
    test_classes = [
        ('Model Config', TestModelConfig),
        ('Inference Configs', TestInferenceConfigs),
        ('Load Config', TestLoadConfig),
    ]
    return run_test_classes("Config", test_classes)


if __name__ == "__main__":
    run_config_tests()
