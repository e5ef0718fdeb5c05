"""Streamlit operator console for the load verification agent.

A single form: enter a load offer, submit it to the FastAPI backend
(app.py), and see the verdict with its reasons and per-check details.

How it works:
- Streamlit re-runs this entire script on every user interaction
- The last result is kept in st.session_state so it survives reruns
- The request itself is made by console.submit_load

Run locally with:
    streamlit run src/load_verifier/streamlit_app.py

The FastAPI backend must be running at AGENT_BACKEND_URL.
"""

from datetime import datetime, timedelta, timezone

import streamlit as st

from load_verifier.config import AGENT_BACKEND_URL
from load_verifier.console import ConsoleError, build_payload, status_badge, submit_load

# --- Page config ---
st.set_page_config(
    page_title="Load Verification",
    page_icon="\U0001f69a",
)

st.title("Load Verification Agent")
st.caption(f"Backend: {AGENT_BACKEND_URL}")

if "last_result" not in st.session_state:
    st.session_state.last_result = None

# --- Load form ---

with st.form("load_form"):
    load_id = st.text_input("Load ID")
    broker_name = st.text_input("Broker name")
    broker_mc = st.text_input("Broker MC number")
    credit_score = st.number_input("Credit score", min_value=0, max_value=100, value=85)
    minutes_ago = st.number_input("Posted (minutes ago)", min_value=0, value=10)
    col1, col2 = st.columns(2)
    pickup_city = col1.text_input("Pickup city")
    delivery_city = col2.text_input("Delivery city")
    rate = col1.number_input("Rate (USD)", min_value=0.0, value=0.0, step=50.0)
    equipment = col2.text_input("Equipment")
    submitted = st.form_submit_button("Verify")

if submitted:
    payload = build_payload(
        load_id=load_id,
        broker_name=broker_name,
        broker_mc=broker_mc,
        credit_score=int(credit_score),
        posted_at=datetime.now(timezone.utc) - timedelta(minutes=int(minutes_ago)),
        pickup_city=pickup_city,
        delivery_city=delivery_city,
        rate=rate or None,
        equipment=equipment,
    )
    with st.spinner("Verifying..."):
        try:
            st.session_state.last_result = submit_load(payload)
        except ConsoleError as e:
            st.session_state.last_result = None
            st.error(str(e))

# --- Result ---

result = st.session_state.last_result
if result:
    colour, label = status_badge(result["verification_status"])
    st.markdown(f"### :{colour}[{label}]")
    for reason in result.get("reasons", []):
        st.write(f"- {reason}")
    with st.expander("Check details"):
        st.json(result.get("metadata", {}))
