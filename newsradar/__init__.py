"""
newsradar - headline clustering, trending-keyword spikes, correlations and
temporal anomaly detection.
"""
