"""TechEnglish progress, XP and achievement backend."""
