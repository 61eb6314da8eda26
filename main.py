import logging
import streamlit as st

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

st.title("Cotton Mixing Dashboard")

st.markdown("""
<style>
.icon-btn {
    display: inline-block;
    margin: 0 20px 20px 0;
    text-align: center;
    font-size: 2.2em;
    text-decoration: none;
    color: inherit;
}
.icon-btn span {
    display: block;
    font-size: 0.7em;
    margin-top: 0.2em;
}
</style>
""", unsafe_allow_html=True)

st.markdown("""
<a class="icon-btn" href="/MixingSummary" target="_self">🧶<span>Mixing Summary</span></a>
""", unsafe_allow_html=True)

st.caption("Bale-weighted fibre quality per mixing, week or month, with change against the previous blend version.")
