"""
anova.py — Per-Feature One-Way ANOVA

Diagnostic side-channel: checks that each engineered feature separates
the fault classes (equal-means null hypothesis across labels). It reads
the dataset and never modifies it; results do not feed back into training.
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats


logger = logging.getLogger(__name__)

ANOVA_COLUMNS = ['feature', 'f_statistic', 'p_value', 'eta_squared', 'significant', 'degenerate']


def anova_table(df, feature_names, label_col='label', alpha=0.05):
    """
    Run one-way ANOVA of every feature against the label.

    A feature with zero overall variance has no defined F statistic; it is
    reported with NaN statistics and ``degenerate=True`` instead of being
    dropped.

    Parameters
    ----------
    df            : DataFrame — dataset with features and label
    feature_names : list      — features to test
    label_col     : str       — grouping column
    alpha         : float     — significance level

    Returns
    -------
    table : DataFrame — one row per feature, in ``feature_names`` order
            (feature, f_statistic, p_value, eta_squared, significant, degenerate)
    """
    groups = [g for _, g in df.groupby(label_col)]
    rows   = []

    for feat in feature_names:
        values = df[feat].to_numpy(dtype=float)

        if np.ptp(values) == 0:
            logger.warning("ANOVA undefined for constant feature '%s'", feat)
            rows.append({
                'feature': feat, 'f_statistic': np.nan, 'p_value': np.nan,
                'eta_squared': np.nan, 'significant': False, 'degenerate': True
            })
            continue

        class_values   = [g[feat].to_numpy(dtype=float) for g in groups]
        f_stat, p_val  = stats.f_oneway(*class_values)

        grand_mean  = values.mean()
        ss_between  = sum(len(v) * (v.mean() - grand_mean) ** 2 for v in class_values)
        ss_total    = ((values - grand_mean) ** 2).sum()

        rows.append({
            'feature':     feat,
            'f_statistic': float(f_stat),
            'p_value':     float(p_val),
            'eta_squared': float(ss_between / ss_total),
            'significant': bool(p_val < alpha),
            'degenerate':  False
        })

    table = pd.DataFrame(rows, columns=ANOVA_COLUMNS)
    logger.info("ANOVA: %d/%d features significant at alpha=%.3g",
                int(table['significant'].sum()), len(table), alpha)
    return table
