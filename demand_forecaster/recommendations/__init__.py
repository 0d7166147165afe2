"""
Risk and recommendation tagging.

Modules
-------
risk    : assess_risks() — threshold rules over trend, volatility, market, macro.
actions : generate_recommendations() — forecast/risk state → action tags.

Both are pure functions with no I/O.
"""
