"""Transformation portal backend: adaptive MBTI assessment service."""
