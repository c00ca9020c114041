"""
End-to-End Tests — Stage Runners and CLI

Tests verify:
- prepare writes engineered (unbalanced) and prepared (capped + balanced) checkpoints
- anova runs on the prepared checkpoint
- train evaluates on a held-out split and writes a loadable artifact
- the CLI chains prepare → train → predict
"""

import json

import pandas as pd
import pytest

from analog_fault.cli import main
from analog_fault.features import ENGINEERED_FEATURES
from analog_fault.inference import load_artifact
from analog_fault.pipeline import (
    ENGINEERED_FILE,
    PREPARED_FILE,
    PRUNING_FILE,
    run_anova,
    run_cross_validation,
    run_prepare,
    run_training,
)


class TestPrepare:

    def test_checkpoints(self, raw_csv, tmp_path):
        run_prepare(raw_csv, tmp_path / 'out')

        for name in (ENGINEERED_FILE, PREPARED_FILE, PRUNING_FILE):
            assert (tmp_path / 'out' / name).exists()

        engineered = pd.read_csv(tmp_path / 'out' / ENGINEERED_FILE)
        assert list(engineered.columns) == ENGINEERED_FEATURES + ['label']
        assert engineered['label'].value_counts()['Normal'] == 20

    def test_prepared_is_balanced(self, raw_csv, tmp_path):
        result = run_prepare(raw_csv, tmp_path / 'out')
        counts = result['prepared']['label'].value_counts()

        assert counts['Normal'] == 40
        assert counts['Fault_A'] == 40
        assert counts['Fault_B'] == 40

    def test_anova_on_prepared(self, raw_csv, tmp_path):
        run_prepare(raw_csv, tmp_path / 'out')
        table = run_anova(tmp_path / 'out' / PREPARED_FILE, tmp_path / 'out')

        assert len(table) == len(ENGINEERED_FEATURES)
        assert (tmp_path / 'out' / 'anova.csv').exists()


@pytest.mark.filterwarnings("ignore::analog_fault.exceptions.ConvergenceWarning")
class TestTrainAndPredict:

    def test_run_training(self, engineered_df, small_config, tmp_path):
        result = run_training(engineered_df, tmp_path / 'model', small_config)

        assert 0.0 <= result['metrics']['accuracy'] <= 1.0
        assert result['metrics']['confusion_matrix'].to_numpy().sum() == 20
        assert (tmp_path / 'model' / 'history.csv').exists()
        assert load_artifact(result['artifact_path']).label_names == ('Fault_A', 'Fault_B', 'Normal')

    def test_run_cross_validation(self, engineered_df, small_config):
        small_config['training']['max_epochs'] = 3
        result = run_cross_validation(engineered_df, k=2, cfg=small_config)
        assert len(result['fold_accuracies']) == 2

    def test_cli_chain(self, raw_csv, tmp_path):
        cfg_path = tmp_path / 'cfg.json'
        cfg_path.write_text(json.dumps({
            'model':    {'hidden_units': [16, 16], 'dropout_blocks': 1},
            'training': {'max_epochs': 5, 'batch_size': 16},
        }))
        out, model, preds = tmp_path / 'out', tmp_path / 'model', tmp_path / 'preds.csv'

        assert main(['--config', str(cfg_path), 'prepare',
                     '--data', str(raw_csv), '--out', str(out)]) == 0
        assert main(['--config', str(cfg_path), 'train',
                     '--data', str(out / ENGINEERED_FILE), '--artifact', str(model)]) == 0
        assert main(['predict', '--artifact', str(model),
                     '--data', str(raw_csv), '--out', str(preds)]) == 0

        predictions = pd.read_csv(preds)
        assert len(predictions) == 100
        assert set(predictions['predicted']) <= {'Normal', 'Fault_A', 'Fault_B'}
