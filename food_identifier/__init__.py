"""
Food identification and nutrition resolution pipeline.

Turns a meal photo into an ordered list of foods with nutrition facts,
with every step recorded in a trace-correlated event log.

Structure:
- domain/: Models, parsing rules and provider mappers
- application/: Stages orchestrating domain logic (vision, nutrition, pipeline)
- infrastructure/: External concerns (OpenAI, USDA, OpenFoodFacts, log sinks)
- tests/: Unit test suite
"""

__version__ = "1.0.0"
