"""Habit tracker API: admin analytics and feature flags."""
