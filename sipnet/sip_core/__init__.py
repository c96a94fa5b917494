"""SIP URI 및 헤더 값 코덱"""
