"""Grid search over suspicious/malicious thresholds to find operating points.

Usage: python -m urlrisk.evaluate_thresholds --dataset labelled_urls.csv --out threshold_results.json

The dataset needs a `url` column and either a numeric `label` column
(0 = legitimate, 1 = phishing) or a `status` column with values
"phishing" / "legitimate".
"""
import argparse
import itertools
import json

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix, f1_score, precision_score

from .app.heuristics import analyze_url
from .policy import load_policy


def load_dataset(dataset_path):
    df = pd.read_csv(dataset_path)
    if 'url' not in df.columns:
        raise ValueError("Dataset must include a 'url' column")
    if 'label' not in df.columns:
        if 'status' in df.columns:
            df = df.copy()
            df['label'] = df['status'].map({'phishing': 1, 'legitimate': 0})
        else:
            raise ValueError("Dataset must include 'label' or 'status' column")
    df = df.dropna(subset=['label'])
    df['url'] = df['url'].fillna('').astype(str)
    return df


def score_dataset(df, policy=None):
    """Risk percentage per row (critical verdicts score 100)."""
    return np.array([analyze_url(u, policy=policy).risk_percentage for u in df['url']], dtype=float)


def run_grid(percentages, y, suspicious_values, malicious_values):
    results = []
    y = np.asarray(y).astype(int)
    for s_thresh, m_thresh in itertools.product(suspicious_values, malicious_values):
        if s_thresh >= m_thresh:
            continue
        flagged = (percentages > s_thresh).astype(int)
        malicious = (percentages > m_thresh).astype(int)
        tn, fp, fn, tp = confusion_matrix(y, flagged, labels=[0, 1]).ravel()
        results.append({
            'suspicious_threshold': float(s_thresh),
            'malicious_threshold': float(m_thresh),
            'tn': int(tn), 'fp': int(fp), 'fn': int(fn), 'tp': int(tp),
            'accuracy': float(accuracy_score(y, flagged)),
            'f1': float(f1_score(y, flagged, zero_division=0)),
            'malicious_precision': float(precision_score(y, malicious, zero_division=0)),
        })
    results.sort(key=lambda r: (r['f1'], r['accuracy']), reverse=True)
    return results


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument('--dataset', required=True)
    parser.add_argument('--policy', default=None, help='JSON policy override to evaluate')
    parser.add_argument('--out', default='threshold_results.json')
    args = parser.parse_args(argv)

    policy = load_policy(args.policy)
    df = load_dataset(args.dataset)
    percentages = score_dataset(df, policy=policy)

    suspicious_values = np.arange(20, 55, 5)
    malicious_values = np.arange(45, 85, 5)
    results = run_grid(percentages, df['label'].to_numpy(), suspicious_values, malicious_values)
    with open(args.out, 'w') as f:
        json.dump({'rows': int(len(df)), 'results': results}, f, indent=2)
    print('Saved threshold search results to', args.out)
    if results:
        best = results[0]
        print('Best: suspicious>%s malicious>%s f1=%.3f' % (
            best['suspicious_threshold'], best['malicious_threshold'], best['f1']))


if __name__ == '__main__':
    main()
