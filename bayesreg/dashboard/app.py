"""
Streamlit reader for the Bayesian regression course.

This dashboard ONLY reads from the API. It does NOT:
- Fit models
- Run MCMC itself
- Import the modeling code

All data comes from: http://localhost:8080/api/v1/...
"""

import streamlit as st

# Page config must be first
st.set_page_config(
    page_title="Bayesian Regression Course",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded",
)

import pandas as pd
import plotly.graph_objects as go
import requests

from bayesreg.config import settings

# =============================================================================
# API Configuration
# =============================================================================

API_BASE_URL = settings.api_base_url
# Running a chapter fits its models
RESULTS_TIMEOUT = 600


def get_api_data(endpoint: str, params: dict = None, timeout: int = 10) -> dict:
    """Fetch data from the API."""
    try:
        response = requests.get(f"{API_BASE_URL}{endpoint}", params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.ConnectionError:
        st.error("⚠️ Cannot connect to API. Start it with: `uvicorn bayesreg.api.main:app --port 8080`")
        return None
    except requests.exceptions.RequestException as e:
        st.error(f"API Error: {e}")
        return None


# =============================================================================
# Sidebar
# =============================================================================

st.sidebar.title("📈 Bayesian Regression")
st.sidebar.markdown("---")

# API status
api_health = get_api_data("/api/v1/health")
if api_health:
    status = api_health.get("status", "unknown")
    if status == "ok":
        st.sidebar.success("✅ API Connected")
    else:
        st.sidebar.warning(f"⚠️ API Status: {status} ({api_health.get('sampler')})")
else:
    st.sidebar.error("❌ API Offline")

st.sidebar.markdown("---")

# Chapter selector
chapters = get_api_data("/api/v1/chapters") or []
chapter_options = {f"{c['number']}. {c['title']}": c["id"] for c in chapters}
selected_display = st.sidebar.selectbox("Chapter", options=list(chapter_options.keys()))
selected_chapter = chapter_options.get(selected_display)

quick = st.sidebar.checkbox("Quick run (one short chain)", value=True)
run_clicked = st.sidebar.button("Run / load results")

st.sidebar.markdown("---")
st.sidebar.caption("Dashboard reads from API only. No model fitting.")


# =============================================================================
# Chapter prose
# =============================================================================

if selected_chapter is None:
    st.info("No chapters available. Check if the API is running.")
    st.stop()

chapter = get_api_data(f"/api/v1/chapters/{selected_chapter}")
if chapter is None:
    st.stop()

st.title(f"Chapter {chapter['number']}: {chapter['title']}")
st.caption(chapter["summary"])

for section in chapter["sections"]:
    st.subheader(section["title"])
    st.markdown(section["body"])


# =============================================================================
# Results
# =============================================================================

st.markdown("---")
st.header("📊 Results")

results = None
if run_clicked:
    with st.spinner("Fitting models..."):
        results = get_api_data(
            f"/api/v1/chapters/{selected_chapter}/results",
            params={"quick": quick},
            timeout=RESULTS_TIMEOUT,
        )
else:
    st.info("Press **Run / load results** to fit this chapter's models.")

if results:
    health = results.get("health", {})
    if not health.get("is_healthy", False):
        problems = health.get("problems", {})
        details = "\n".join(f"- **{model}**: {'; '.join(msgs)}" for model, msgs in problems.items())
        st.warning(f"""
        ⚠️ **Convergence Warning**

        {details}

        **Do not trust these summaries until the diagnostics are healthy.**
        """)
    else:
        st.success("✅ All fits pass the diagnostic checks.")

    # Diagnostics overview
    diagnostics = results.get("diagnostics", {})
    if diagnostics:
        diag_df = pd.DataFrame([
            {
                "Model": name,
                "Healthy": "✅" if d["is_healthy"] else "⚠️",
                "Divergences": d["n_divergences"],
                "Max R-hat": d["max_rhat"],
                "Min ESS": d["min_ess"],
            }
            for name, d in diagnostics.items()
        ])
        st.dataframe(diag_df, use_container_width=True, hide_index=True)

        fig = go.Figure()
        fig.add_trace(go.Bar(
            x=diag_df["Model"],
            y=diag_df["Min ESS"],
            marker_color=["#2ecc71" if d["is_healthy"] else "#e67e22" for d in diagnostics.values()],
        ))
        fig.add_hline(y=400, line_dash="dash", line_color="gray", annotation_text="ESS 400")
        fig.update_layout(title="Minimum bulk ESS per model", height=300, yaxis_title="ESS")
        st.plotly_chart(fig, use_container_width=True)

    # Summary tables
    for name, records in results.get("summaries", {}).items():
        st.subheader(f"Summary: {name}")
        st.dataframe(pd.DataFrame(records), use_container_width=True, hide_index=True)

    values = results.get("values", {})
    if values:
        st.subheader("Key quantities")
        st.json(values)

    st.caption(f"""
    **Computed:** {results.get('computed_at', 'N/A')} |
    **Sampler:** {results.get('sampler', {})} |
    **Figures:** {', '.join(results.get('figures', []))}
    """)


# =============================================================================
# Exercises
# =============================================================================

if chapter["exercises"]:
    st.markdown("---")
    st.header("✏️ Exercises")

    for exercise in chapter["exercises"]:
        with st.expander(f"Exercise {exercise['id']}"):
            st.markdown(exercise["prompt"])
            if st.checkbox("Show solution", key=f"solution-{exercise['id']}"):
                st.markdown(exercise["solution_text"])
                if st.button("Compute solution", key=f"compute-{exercise['id']}"):
                    with st.spinner("Computing..."):
                        solution = get_api_data(
                            f"/api/v1/chapters/{selected_chapter}/exercises/{exercise['id']}/solution",
                            params={"quick": quick},
                            timeout=RESULTS_TIMEOUT,
                        )
                    if solution:
                        st.json(solution.get("value"))


# =============================================================================
# Footer
# =============================================================================

st.markdown("---")
st.caption("📈 Bayesian Regression Course | Dashboard v1.0")
