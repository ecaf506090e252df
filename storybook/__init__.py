"""
Content backend for the multilingual storybook platform.

Admins manage stories, cards and sub-parts with per-language text and
image uploads; visitors list stories and subscribe by email.
"""
