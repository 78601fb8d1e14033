"""Sample and generated data loaders"""
