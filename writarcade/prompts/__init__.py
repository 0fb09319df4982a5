"""Prompt builders for game generation, panel narration and panel images"""
