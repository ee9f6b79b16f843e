"""Screens, key handling, UI state persistence and text rendering for the control panel."""