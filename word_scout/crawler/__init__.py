"""word_scout.crawler: параллельная загрузка страниц и подсчёт слов."""
