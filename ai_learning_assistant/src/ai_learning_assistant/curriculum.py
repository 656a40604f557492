"""
Static Curriculum

The 90-day course plan: one topic per day plus the module templates that
group the days. StaticCurriculum turns them into DayContent (theory text and
three practice tasks) for any programming language.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from ai_learning_assistant.config import TOTAL_COURSE_DAYS
from ai_learning_assistant.models import DayContent, DayTask

LANGUAGE_LABELS = {
    "python": "Python",
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "java": "Java",
    "cpp": "C++",
    "go": "Go",
    "csharp": "C#",
}


@dataclass(frozen=True)
class DayTopic:
    day: int
    topic: str
    description: str


@dataclass(frozen=True)
class ModuleTemplate:
    title: str
    duration: int
    focus: Tuple[str, ...]
    theory_snippet: str
    recap: str


_DAY_TOPIC_ROWS = [
    (1, "Введение в программирование и первая программа", "Знакомство с языком, установка окружения, первая программа Hello World"),
    (2, "Переменные и типы данных", "Объявление переменных, базовые типы данных, операции присваивания"),
    (3, "Арифметические операции", "Математические операции, приоритет операторов, работа с числами"),
    (4, "Строки и операции со строками", "Создание строк, конкатенация, форматирование, методы строк"),
    (5, "Ввод и вывод данных", "Чтение пользовательского ввода, вывод на экран, форматированный вывод"),
    (6, "Условные операторы if-else", "Логические условия, операторы сравнения, ветвление программы"),
    (7, "Вложенные условия и elif", "Множественные условия, вложенные if, оператор elif"),
    (8, "Логические операторы", "AND, OR, NOT, комбинирование условий"),
    (9, "Цикл while", "Циклы с предусловием, управление итерациями, бесконечные циклы"),
    (10, "Цикл for и range", "Итерация по последовательностям, функция range, счётчики"),
    (11, "Списки (массивы)", "Создание списков, индексация, срезы"),
    (12, "Методы списков", "Добавление, удаление, сортировка элементов"),
    (13, "Кортежи", "Неизменяемые последовательности, распаковка"),
    (14, "Словари", "Пары ключ-значение, доступ к элементам"),
    (15, "Множества", "Уникальные элементы, операции над множествами"),
    (16, "Вложенные структуры данных", "Списки списков, словари словарей"),
    (17, "Итерация по коллекциям", "Циклы для обхода списков, словарей, множеств"),
    (18, "List comprehensions", "Генераторы списков, фильтрация данных"),
    (19, "Работа с индексами и enumerate", "Получение индексов при итерации"),
    (20, "Функции zip и map", "Объединение и преобразование коллекций"),
    (21, "Определение функций", "Создание функций, параметры, возвращаемые значения"),
    (22, "Аргументы функций", "Позиционные и именованные аргументы, значения по умолчанию"),
    (23, "Область видимости переменных", "Локальные и глобальные переменные, nonlocal"),
    (24, "Lambda-функции", "Анонимные функции, применение в filter и map"),
    (25, "Рекурсия", "Рекурсивные вызовы, базовый случай"),
    (26, "Модули и import", "Создание модулей, импорт функций"),
    (27, "Стандартная библиотека", "Полезные встроенные модули"),
    (28, "Работа с файлами - чтение", "Открытие файлов, чтение содержимого"),
    (29, "Работа с файлами - запись", "Запись в файлы, режимы открытия"),
    (30, "Обработка исключений", "Try-except, обработка ошибок"),
    (31, "Основы ООП - классы", "Создание классов, атрибуты"),
    (32, "Методы класса", "Определение методов, self"),
    (33, "Конструктор __init__", "Инициализация объектов"),
    (34, "Инкапсуляция", "Приватные атрибуты, геттеры и сеттеры"),
    (35, "Наследование", "Создание дочерних классов, super()"),
    (36, "Полиморфизм", "Переопределение методов"),
    (37, "Магические методы", "__str__, __repr__, __len__"),
    (38, "Статические методы и методы класса", "@staticmethod, @classmethod"),
    (39, "Абстрактные классы", "ABC, абстрактные методы"),
    (40, "Композиция vs Наследование", "Проектирование классов"),
    (41, "Работа со строками - продвинутое", "Регулярные выражения, re модуль"),
    (42, "Работа с датами и временем", "datetime модуль"),
    (43, "Работа с JSON", "Сериализация и десериализация"),
    (44, "Работа с CSV", "Чтение и запись CSV файлов"),
    (45, "Генераторы", "yield, ленивые вычисления"),
    (46, "Декораторы", "Функции-обёртки, @decorator"),
    (47, "Контекстные менеджеры", "with statement, __enter__ и __exit__"),
    (48, "Итераторы", "__iter__ и __next__"),
    (49, "Функциональное программирование", "map, filter, reduce"),
    (50, "Работа с путями - pathlib", "Кроссплатформенная работа с путями"),
    (51, "Основы алгоритмов - поиск", "Линейный и бинарный поиск"),
    (52, "Алгоритмы сортировки", "Пузырьковая, быстрая сортировка"),
    (53, "Сложность алгоритмов", "Big O нотация"),
    (54, "Стек и очередь", "Реализация базовых структур"),
    (55, "Связные списки", "Односвязные и двусвязные списки"),
    (56, "Деревья", "Бинарные деревья, обход"),
    (57, "Хеш-таблицы", "Принцип работы словарей"),
    (58, "Графы - основы", "Представление графов"),
    (59, "Обход графов", "BFS и DFS"),
    (60, "Динамическое программирование", "Мемоизация, табуляция"),
    (61, "Тестирование - unittest", "Написание юнит-тестов"),
    (62, "Тестирование - pytest", "Современный фреймворк тестирования"),
    (63, "Отладка кода", "Использование отладчика, pdb"),
    (64, "Логирование", "logging модуль"),
    (65, "Виртуальные окружения", "venv, управление зависимостями"),
    (66, "Пакетный менеджер pip", "Установка библиотек, requirements.txt"),
    (67, "Git - основы", "Инициализация репозитория, коммиты"),
    (68, "Git - ветвление", "Создание веток, merge"),
    (69, "Документирование кода", "Docstrings, генерация документации"),
    (70, "Линтеры и форматтеры", "pylint, black, flake8"),
    (71, "Работа с API - requests", "HTTP запросы, REST API"),
    (72, "Парсинг HTML - BeautifulSoup", "Web scraping"),
    (73, "Работа с базами данных - SQL", "Основы SQL, sqlite3"),
    (74, "ORM - SQLAlchemy основы", "Объектно-реляционное отображение"),
    (75, "Асинхронное программирование", "async/await, asyncio"),
    (76, "Многопоточность", "threading модуль"),
    (77, "Многопроцессность", "multiprocessing модуль"),
    (78, "Работа с изображениями - Pillow", "Обработка изображений"),
    (79, "Работа с Excel - openpyxl", "Чтение и запись Excel файлов"),
    (80, "Создание CLI приложений", "argparse, click"),
    (81, "Проект: Консольное приложение", "Планирование архитектуры"),
    (82, "Проект: Реализация основного функционала", "Разработка core логики"),
    (83, "Проект: Работа с данными", "Интеграция хранилища"),
    (84, "Проект: Пользовательский интерфейс", "CLI или GUI"),
    (85, "Проект: Тестирование", "Покрытие тестами"),
    (86, "Проект: Рефакторинг", "Улучшение кода"),
    (87, "Проект: Документация", "README, комментарии"),
    (88, "Подготовка к собеседованиям", "Типичные вопросы"),
    (89, "Портфолио и резюме", "Оформление проектов"),
    (90, "План дальнейшего развития", "Roadmap junior разработчика"),
]

DAY_TOPICS: Dict[int, DayTopic] = {row[0]: DayTopic(*row) for row in _DAY_TOPIC_ROWS}

MODULES: List[ModuleTemplate] = [
    ModuleTemplate(
        title="Фундамент и первые шаги",
        duration=10,
        focus=("синтаксис", "переменные", "ввод-вывод", "типизация"),
        theory_snippet=(
            "Разберём основы синтаксиса и привычки чистого кода. Выполним первые упражнения "
            "и поймём, как работает среда выполнения выбранного языка."
        ),
        recap="Объясни ключевые элементы базового синтаксиса и подготовься к задачам на переменные и выражения.",
    ),
    ModuleTemplate(
        title="Условная логика и циклы",
        duration=10,
        focus=("ветвления", "циклы", "итерации", "паттерны чтения входа"),
        theory_snippet=(
            "Погружаемся в управляющие конструкции. Учимся строить ветвящиеся сценарии "
            "и повторять операции, пока не достигнем нужного результата."
        ),
        recap="Подумай, как описать условные конструкции и когда стоит выбирать тот или иной цикл.",
    ),
    ModuleTemplate(
        title="Структуры данных и коллекции",
        duration=10,
        focus=("списки", "словари", "множества", "кортежи"),
        theory_snippet=(
            "Сравним основные коллекции языка, проработаем типичные операции над ними "
            "и научимся выбирать оптимальную структуру под задачу."
        ),
        recap="Сформулируй отличия между ключевыми коллекциями и их применимость.",
    ),
    ModuleTemplate(
        title="Функции и модули",
        duration=10,
        focus=("повторное использование", "параметры", "область видимости", "тестируемость"),
        theory_snippet=(
            "Рефакторим код в функции, обсуждаем чистые функции и проектируем модули. "
            "Учимся документировать поведение и писать тесты."
        ),
        recap="Продумай сигнатуры функций, их возвращаемые значения и способы тестирования.",
    ),
    ModuleTemplate(
        title="Парадигмы и ООП",
        duration=10,
        focus=("классы", "объекты", "наследование", "инкапсуляция"),
        theory_snippet=(
            "Создаём собственные типы, используем принципы SOLID и моделируем предметную область. "
            "Разбираем паттерны проектирования уровня junior."
        ),
        recap="Сформулируй преимущества ООП и пример применения принципов SOLID.",
    ),
    ModuleTemplate(
        title="Работа с данными и файлами",
        duration=8,
        focus=("файлы", "форматы", "парсинг", "исключения"),
        theory_snippet=(
            "Прикручиваем ввод-вывод, читаем и записываем данные, обрабатываем исключения "
            "и логируем всё важное."
        ),
        recap="Как аккуратно обрабатывать ошибки и гарантировать закрытие ресурсов?",
    ),
    ModuleTemplate(
        title="Инструменты разработчика",
        duration=7,
        focus=("git", "рефакторинг", "линтеры", "дебаг"),
        theory_snippet=(
            "Автоматизируем рабочий процесс: контроль версий, установка зависимостей, "
            "статический анализ и отладка."
        ),
        recap="Опиши свой рабочий пайплайн и какие инструменты помогают поддерживать качество.",
    ),
    ModuleTemplate(
        title="Проектная работа",
        duration=15,
        focus=("архитектура", "API", "слои", "навигация"),
        theory_snippet=(
            "Переходим к фичам проекта: проектируем структуру, реализуем функционал и документируем. "
            "Закладываем основу MVP."
        ),
        recap="Как бы ты спланировал проект и разбил его на задачи?",
    ),
    ModuleTemplate(
        title="Алгоритмы и оптимизация",
        duration=7,
        focus=("алгоритмы", "сложность", "оптимизация", "тестирование"),
        theory_snippet=(
            "Готовим себя к собеседованиям: анализ выполняемости, базовые алгоритмы "
            "и техники оптимизации."
        ),
        recap="Оцени временную и пространственную сложность реализованных решений.",
    ),
    ModuleTemplate(
        title="Финал и карьерный трек",
        duration=3,
        focus=("подготовка резюме", "портфолио", "интервью", "рост"),
        theory_snippet=(
            "Финализируем курс: обновляем портфолио, готовим резюме, тренируемся проходить "
            "интервью и ставим цели развития."
        ),
        recap="Сформулируй свой план дальнейшего роста после курса.",
    ),
]

_TASK_DIFFICULTIES = ("easy", "medium", "hard")


def language_label(language_id: str) -> str:
    return LANGUAGE_LABELS.get(language_id, language_id or "Python")


def get_day_topic(day: int) -> DayTopic:
    """Topic of a course day (1..90)."""
    _check_day(day)
    return DAY_TOPICS[day]


def module_for_day(day: int) -> Tuple[ModuleTemplate, int]:
    """The module covering a day and the day's 0-based offset inside it."""
    _check_day(day)
    start = 1
    for module in MODULES:
        if day < start + module.duration:
            return module, day - start
        start += module.duration
    return MODULES[-1], MODULES[-1].duration - 1


def _check_day(day: int) -> None:
    if not isinstance(day, int) or not 1 <= day <= TOTAL_COURSE_DAYS:
        raise ValueError(f"Day must be between 1 and {TOTAL_COURSE_DAYS}, got {day!r}")


class StaticCurriculum:
    """Curriculum source built from the static tables above."""

    def get_day_content(self, language_id: str, day: int) -> DayContent:
        topic = get_day_topic(day)
        module, offset = module_for_day(day)
        label = language_label(language_id)
        focus_point = module.focus[offset % len(module.focus)]

        theory = (
            f"{module.theory_snippet} Сегодняшняя тема: {topic.topic} на языке {label}. "
            f"{topic.description}. Дополнительное внимание уделяем теме «{focus_point}» "
            f"и практическим приёмам."
        )
        return DayContent(
            day=day,
            title=topic.topic,
            theory=theory,
            tasks=self._build_tasks(language_id, label, topic),
            focus=module.focus,
            recap_question=module.recap,
        )

    @staticmethod
    def _build_tasks(language_id: str, label: str, topic: DayTopic) -> Tuple[DayTask, ...]:
        prompts = (
            ("Разминка", f"Напиши короткую программу на {label}, которая демонстрирует тему «{topic.topic}»."),
            ("Практика", f"Реши прикладную задачу на {label}: {topic.description.lower()}."),
            ("Испытание", f"Объедини тему «{topic.topic}» с материалом прошлых дней в одной программе на {label}."),
        )
        return tuple(
            DayTask(
                id=f"{language_id}-day{topic.day}-task{index + 1}",
                title=f"{title}: {topic.topic}",
                description=description,
                difficulty=_TASK_DIFFICULTIES[index],
            )
            for index, (title, description) in enumerate(prompts)
        )
