"""word_scout.parser: извлечение текста из HTML."""
