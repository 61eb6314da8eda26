import streamlit as st
from mixing.mixing_summary import mixing_summary_report

st.set_page_config(page_title="Mixing Summary", page_icon="🧶", layout="wide")

mixing_summary_report()
