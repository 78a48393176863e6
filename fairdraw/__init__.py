"""Provably fair lottery draws for elections."""
