"""
Forecast composition and the engine API.

Modules
-------
forecaster : forecast_points() — multi-month point forecasts with decaying
             confidence and injectable jitter.
engine     : ForecastEngine — forecast(), submit_feedback(), get_metrics(),
             improve(), parameter_history(); wires data sources, pure
             components and learning.
"""
