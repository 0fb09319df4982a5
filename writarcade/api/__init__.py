"""HTTP API for WritArcade"""
