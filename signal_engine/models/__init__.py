"""Domain models for features, levels, gamma, risk and signals"""
