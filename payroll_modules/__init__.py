"""Payroll modules: facades that own transaction boundaries over the kernel."""
