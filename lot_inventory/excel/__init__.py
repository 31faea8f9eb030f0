"""Spreadsheet / CSV upload readers."""
