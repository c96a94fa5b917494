"""RTP 미디어 소켓 할당"""
