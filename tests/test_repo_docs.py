import json
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def test_readme_exists_and_mentions_cli():
    readme = ROOT / 'README.md'
    assert readme.exists(), 'Missing README.md'
    text = readme.read_text().lower()
    assert 'main.py --config' in text
    assert 'mtss' in text


def test_example_config_is_valid_json():
    config = json.loads((ROOT / 'model_config.json').read_text())
    assert config['datasets'], 'Example config has no datasets'
    for dataset in config['datasets']:
        assert 'x_threshold_name' in dataset and 'y_threshold_name' in dataset
