"""
Pure signal extraction from historical data.

Modules
-------
monthly_agg    : aggregate_monthly() + data_quality_tier() — transaction → month grain.
trend          : estimate_trend() — OLS slope, normalised and clamped trend factor.
seasonality    : extract_seasonality() — detrended calendar-month factors + volatility.
market_signals : compute_market_adjustment() — price trend and sentiment impact.

No module here touches a database or holds state.
"""
