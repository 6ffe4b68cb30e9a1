"""
Streamlit UI for FootyCast – football match score-distribution predictor.

Run from project root (with APIFOOTBALL_KEY set):

    streamlit run src/footycast/ui/app.py
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict

import pandas as pd
import streamlit as st

from footycast.data.fixture_finder import find_fixtures, fixture_summary
from footycast.errors import FootyCastError
from footycast.predict import PredictionService


@st.cache_resource(show_spinner=False)
def load_service() -> PredictionService:
    """One service (and lookup cache) per Streamlit process."""
    return PredictionService()


def score_matrix_frame(matrix: Any) -> pd.DataFrame:
    """Score grid as a DataFrame: rows = home goals, columns = away goals."""
    df = pd.DataFrame(matrix)
    df.index.name = "home"
    df.columns.name = "away"
    return df


def render_prediction(result: Dict[str, Any]) -> None:
    pred = result["prediction"]
    col_left, col_right = st.columns([2, 3])

    with col_left:
        st.subheader("Expected goals")
        st.write(f"λ home: **{pred['lambda_home']}** · λ away: **{pred['lambda_away']}**")
        st.caption(
            f"League μ {result['mu']['mu_home']}/{result['mu']['mu_away']} "
            f"({result['mu']['source']}, {result['mu']['matches']} matches) · "
            f"lineup confidence: {result['xi_confidence']}"
        )

        probs = pred["win_probs_blended"]
        prob_df = pd.DataFrame(
            {
                "Outcome": list(probs.keys()),
                "Probability": list(probs.values()),
            }
        ).set_index("Outcome")
        st.bar_chart(prob_df)

        st.write(
            f"BTTS yes: `{pred['btts_yes']}` · Over 2.5: `{pred['over25']}` · "
            f"Under 2.5: `{pred['under25']}`"
        )
        st.dataframe(pd.DataFrame(pred["top_scores"]), use_container_width=True)

    with col_right:
        st.subheader("Score matrix")
        st.dataframe(
            score_matrix_frame(pred["score_matrix"]).style.format("{:.3f}"),
            use_container_width=True,
        )

        st.subheader("Modifiers")
        applied = result["modifiers"]["applied"]
        if not applied:
            st.write("No modifiers configured.")
        else:
            st.dataframe(pd.DataFrame(applied), use_container_width=True)

        missing = result["explanation"]["missing_sources"]
        if missing:
            st.warning(f"Missing sources (neutral defaults used): {', '.join(missing)}")


def render_finder(service: PredictionService) -> None:
    st.sidebar.header("Find a fixture")
    day = st.sidebar.date_input("Date", value=date.today())
    home = st.sidebar.text_input("Home team (optional)")
    away = st.sidebar.text_input("Away team (optional)")

    if st.sidebar.button("Search"):
        try:
            fixtures = find_fixtures(service.client, day.isoformat(), home=home or None, away=away or None)
        except FootyCastError as e:
            st.sidebar.error(f"Search failed: {e}")
            return
        if not fixtures:
            st.sidebar.info("No fixtures found.")
            return
        rows = [fixture_summary(f) for f in fixtures]
        st.sidebar.dataframe(
            pd.DataFrame(
                [
                    {
                        "fixture_id": r["fixture_id"],
                        "home": r["home"]["name"],
                        "away": r["away"]["name"],
                        "status": r["status"],
                    }
                    for r in rows
                ]
            ),
            use_container_width=True,
        )


def main() -> None:
    st.set_page_config(
        page_title="FootyCast – Score Predictor",
        layout="wide",
    )

    st.title("⚽ FootyCast – Match Score Predictor")

    try:
        service = load_service()
    except FootyCastError as e:
        st.error(f"{e}\n\nSet the API key first:\n\n```bash\nexport APIFOOTBALL_KEY=...\n```")
        return

    render_finder(service)

    fixture_id = st.number_input("Fixture id", min_value=1, step=1, value=None)
    if fixture_id and st.button("🔮 Predict", key="predict"):
        with st.spinner("Fetching signals..."):
            try:
                result = service.predict(int(fixture_id))
            except FootyCastError as e:
                st.error(f"Prediction failed: {e}")
                return
        render_prediction(result)


if __name__ == "__main__":
    main()
